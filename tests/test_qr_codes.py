from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import make_merchant, make_qr, make_user
from vale_cashback.core.exceptions import (
    AlreadyUsedError,
    AuthorizationError,
    ExpiredCodeError,
    InvalidCodeError,
    ValidationError,
)
from vale_cashback.models.enums import QRCodeStatus
from vale_cashback.models.qr_code import QRCode
from vale_cashback.services import qr_codes
from vale_cashback.utils.helpers import utcnow


class TestGeneratePayment:

    def test_generates_active_code(self, db):
        merchant = make_merchant(db)
        now = utcnow()

        qr = qr_codes.generate_payment(db, merchant.user, "25.50", description="Lunch", now=now)

        assert qr.status == QRCodeStatus.active
        assert qr.amount == Decimal("25.50")
        assert qr.expires_at == now + timedelta(minutes=15)
        assert qr.data["merchant_id"] == str(merchant.id)
        assert qr.data["amount"] == "25.50"

    def test_minimum_amount(self, db):
        merchant = make_merchant(db)

        with pytest.raises(ValidationError):
            qr_codes.generate_payment(db, merchant.user, "4.99")

    def test_unapproved_merchant(self, db):
        merchant = make_merchant(db, approved=False)

        with pytest.raises(AuthorizationError):
            qr_codes.generate_payment(db, merchant.user, "10.00")

    def test_client_has_no_merchant_profile(self, db):
        client = make_user(db)

        with pytest.raises(AuthorizationError):
            qr_codes.generate_payment(db, client, "10.00")


class TestVerify:

    def test_verify_by_code_and_by_id(self, db):
        merchant = make_merchant(db)
        qr = make_qr(db, merchant, amount="12.00")

        by_code = qr_codes.verify(db, qr.code)
        by_id = qr_codes.verify(db, str(qr.id))

        assert by_code.qr_code_id == qr.id
        assert by_id.qr_code_id == qr.id
        assert by_code.merchant_id == merchant.id
        assert by_code.merchant_name == "Padaria Central"
        assert by_code.amount == Decimal("12.00")

    def test_verify_is_read_only(self, db):
        merchant = make_merchant(db)
        qr = make_qr(db, merchant)

        qr_codes.verify(db, qr.code)
        qr_codes.verify(db, qr.code)

        db.expire_all()
        assert db.get(QRCode, qr.id).status == QRCodeStatus.active

    def test_unknown_code(self, db):
        with pytest.raises(InvalidCodeError):
            qr_codes.verify(db, "does-not-exist")

    def test_expired_by_time(self, db):
        merchant = make_merchant(db)
        qr = make_qr(db, merchant, expires_in=timedelta(seconds=-1))

        with pytest.raises(ExpiredCodeError):
            qr_codes.verify(db, qr.code)

    def test_expiry_boundary_is_exclusive(self, db):
        merchant = make_merchant(db)
        qr = make_qr(db, merchant)

        with pytest.raises(ExpiredCodeError):
            qr_codes.verify(db, qr.code, now=qr.expires_at)

    def test_already_used(self, db):
        merchant = make_merchant(db)
        qr = make_qr(db, merchant, status=QRCodeStatus.used)

        with pytest.raises(AlreadyUsedError):
            qr_codes.verify(db, qr.code)


class TestConsume:

    def test_consume_once(self, db):
        client = make_user(db)
        merchant = make_merchant(db)
        qr = make_qr(db, merchant)
        now = utcnow()

        qr_codes.consume(db, qr.id, client.id, now)
        db.commit()

        with pytest.raises(AlreadyUsedError):
            qr_codes.consume(db, qr.id, client.id, now)

    def test_consume_after_expiry(self, db):
        client = make_user(db)
        merchant = make_merchant(db)
        qr = make_qr(db, merchant)

        with pytest.raises(ExpiredCodeError):
            qr_codes.consume(db, qr.id, client.id, qr.expires_at + timedelta(seconds=1))
