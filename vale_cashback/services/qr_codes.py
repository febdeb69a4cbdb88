# vale_cashback/services/qr_codes.py
"""
Payment QR codes.

``verify`` is read-only. The only mutation of a code is ``consume``, a
conditional ``active -> used`` update run inside the settlement transaction;
two concurrent redemptions can never both see an affected row.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from vale_cashback.core import config
from vale_cashback.core.exceptions import (
    AlreadyUsedError,
    AuthorizationError,
    ExpiredCodeError,
    InvalidCodeError,
    ValidationError,
)
from vale_cashback.core.logger import ledger_logger
from vale_cashback.models.enums import PaymentMethod, QRCodeStatus, QRCodeType
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.qr_code import QRCode
from vale_cashback.models.user import User
from vale_cashback.utils.helpers import generate_payment_code, isoformat, money_str, utcnow
from vale_cashback.utils.validation_functions import parse_amount


class PaymentIntent(BaseModel):
    qr_code_id: UUID
    code: str
    merchant_id: UUID
    merchant_user_id: UUID
    merchant_name: str
    amount: Decimal
    description: Optional[str] = None
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "qr_code_id": str(self.qr_code_id),
            "code": self.code,
            "merchant_id": str(self.merchant_id),
            "merchant_name": self.merchant_name,
            "amount": money_str(self.amount),
            "description": self.description,
            "expires_at": isoformat(self.expires_at),
        }


def generate_payment(db: Session, merchant_user: User, amount, description: str = None,
                     payment_type: str = None, now: datetime = None) -> QRCode:
    now = now or utcnow()
    merchant = db.query(Merchant).filter(Merchant.user_id == merchant_user.id).first()
    if not merchant:
        raise AuthorizationError("Merchant profile not found")
    if not merchant.approved:
        raise AuthorizationError("Merchant is not approved to receive payments")

    amount = parse_amount(amount)
    if amount < config.QR_MIN_PAYMENT_AMOUNT:
        raise ValidationError(f"The minimum payment amount is ${money_str(config.QR_MIN_PAYMENT_AMOUNT)}")

    code = generate_payment_code()
    description = description or "Vale Cashback payment"
    qr = QRCode(
        user_id=merchant_user.id,
        code=code,
        amount=amount,
        description=description,
        type=QRCodeType.payment,
        data={
            "type": "payment_request",
            "code": code,
            "merchant_id": str(merchant.id),
            "merchant_name": merchant.store_name,
            "amount": money_str(amount),
            "description": description,
            "payment_type": payment_type or PaymentMethod.wallet.value,
            "timestamp": now.isoformat(),
        },
        status=QRCodeStatus.active,
        expires_at=now + timedelta(minutes=config.QR_CODE_TTL_MINUTES),
        created_at=now
    )
    db.add(qr)
    db.commit()
    db.refresh(qr)
    ledger_logger.info("QR code %s issued by merchant %s for %s", qr.id, merchant.id, money_str(amount))
    return qr


def find_code(db: Session, reference) -> Optional[QRCode]:
    """Look a code up by its primary key or by its printed ``code`` string."""
    if reference is None or reference == "":
        return None
    try:
        qr_id = UUID(str(reference))
    except ValueError:
        qr_id = None
    if qr_id is not None:
        qr = db.get(QRCode, qr_id)
        if qr:
            return qr
    return db.query(QRCode).filter(QRCode.code == str(reference)).first()


def check_redeemable(qr: QRCode, now: datetime) -> None:
    if qr.type != QRCodeType.payment:
        raise InvalidCodeError("QR code is not a payment code")
    if qr.status == QRCodeStatus.used:
        raise AlreadyUsedError("QR code has already been used")
    if qr.status == QRCodeStatus.expired or qr.expires_at <= now:
        raise ExpiredCodeError("QR code has expired")


def verify(db: Session, reference, now: datetime = None) -> PaymentIntent:
    now = now or utcnow()
    qr = find_code(db, reference)
    if not qr:
        raise InvalidCodeError("QR code not found or invalid")
    check_redeemable(qr, now)

    merchant = db.query(Merchant).filter(Merchant.user_id == qr.user_id).first()
    if not merchant:
        raise InvalidCodeError("Merchant for this QR code not found")

    return PaymentIntent(
        qr_code_id=qr.id,
        code=qr.code,
        merchant_id=merchant.id,
        merchant_user_id=merchant.user_id,
        merchant_name=merchant.store_name,
        amount=Decimal(str(qr.amount or 0)),
        description=qr.description,
        expires_at=qr.expires_at
    )


def consume(db: Session, qr_id: UUID, client_id: UUID, now: datetime) -> None:
    updated = (
        db.query(QRCode)
        .filter(
            QRCode.id == qr_id,
            QRCode.status == QRCodeStatus.active,
            QRCode.expires_at > now
        )
        .update(
            {QRCode.status: QRCodeStatus.used, QRCode.used_at: now, QRCode.used_by: client_id},
            synchronize_session=False
        )
    )
    if updated == 1:
        return

    qr = db.query(QRCode).filter(QRCode.id == qr_id).populate_existing().first()
    if qr is None:
        raise InvalidCodeError("QR code not found or invalid")
    if qr.status == QRCodeStatus.used:
        raise AlreadyUsedError("QR code has already been used")
    raise ExpiredCodeError("QR code has expired")
