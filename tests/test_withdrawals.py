"""
Tests for the merchant withdrawal workflow.
"""
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import balance_of, make_merchant, make_user
from vale_cashback.core.exceptions import (
    AuthorizationError,
    InsufficientBalanceError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from vale_cashback.models.enums import NotificationType, UserType, WithdrawalStatus
from vale_cashback.models.notification import Notification
from vale_cashback.services import withdrawals

BANK = {"bank_name": "Banco do Brasil", "agency": "0001", "account": "12345-6"}


def request_body(amount, **extra):
    body = dict(BANK, amount=amount)
    body.update(extra)
    return body


@pytest.fixture
def admin(db):
    return make_user(db, name="Ada Admin", user_type=UserType.admin)


class TestCreateRequest:

    def test_fee_and_net_amount_stored(self, db, rules):
        merchant = make_merchant(db, balance="100.00")

        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)

        assert request.status == WithdrawalStatus.pending
        assert request.amount == Decimal("40.00")
        assert request.fee_amount == Decimal("2.00")
        assert request.net_amount == Decimal("38.00")
        # Balance is only debited on completion
        assert balance_of(db, merchant.user_id) == Decimal("100.00")

    def test_pending_requests_reserve_balance(self, db, rules):
        merchant = make_merchant(db, balance="50.00")

        withdrawals.create_request(db, merchant.user, request_body("30.00"), rules)

        with pytest.raises(InsufficientBalanceError) as exc:
            withdrawals.create_request(db, merchant.user, request_body("30.00"), rules)
        assert exc.value.details["available"] == "20.00"
        assert len(withdrawals.list_requests(db, user_id=merchant.user_id)) == 1

    def test_below_minimum(self, db, rules):
        merchant = make_merchant(db, balance="100.00")

        with pytest.raises(ValidationError):
            withdrawals.create_request(db, merchant.user, request_body("19.99"), rules)

    def test_missing_bank_details(self, db, rules):
        merchant = make_merchant(db, balance="100.00")

        with pytest.raises(ValidationError) as exc:
            withdrawals.create_request(db, merchant.user, {"amount": "30.00"}, rules)
        assert exc.value.details["missing"] == ["bank_name", "account"]

    def test_client_cannot_withdraw(self, db, rules):
        client = make_user(db, balance="100.00")

        with pytest.raises(AuthorizationError):
            withdrawals.create_request(db, client, request_body("30.00"), rules)

    def test_admins_are_notified(self, db, rules, admin):
        merchant = make_merchant(db, balance="100.00")

        withdrawals.create_request(db, merchant.user, request_body("30.00"), rules)

        notes = db.query(Notification).filter(Notification.user_id == admin.id).all()
        assert len(notes) == 1
        assert notes[0].type == NotificationType.withdrawal

    def test_wallet_reports_available_balance(self, db, rules):
        merchant = make_merchant(db, balance="100.00")
        withdrawals.create_request(db, merchant.user, request_body("30.00"), rules)

        wallet = withdrawals.get_wallet(db, merchant.user_id)

        assert wallet == {
            "current_balance": "100.00",
            "pending_amount": "30.00",
            "pending_count": 1,
            "available_balance": "70.00",
        }


class TestTransitions:

    def test_complete_debits_balance(self, db, rules, admin):
        merchant = make_merchant(db, balance="100.00")
        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)

        done = withdrawals.process(db, request.id, admin, "completed", "Paid via PIX")

        assert done.status == WithdrawalStatus.completed
        assert done.processed_by == admin.id
        assert done.processed_at is not None
        assert balance_of(db, merchant.user_id) == Decimal("60.00")

    def test_reject_keeps_balance_and_reason(self, db, rules, admin):
        merchant = make_merchant(db, balance="100.00")
        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)

        rejected = withdrawals.process(db, request.id, admin, "rejected", "Account mismatch")

        assert rejected.status == WithdrawalStatus.rejected
        assert rejected.notes == "Account mismatch"
        assert balance_of(db, merchant.user_id) == Decimal("100.00")

    def test_cancel_by_owner(self, db, rules):
        merchant = make_merchant(db, balance="100.00")
        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)

        cancelled = withdrawals.cancel(db, request.id, merchant.user)

        assert cancelled.status == WithdrawalStatus.cancelled
        assert withdrawals.get_wallet(db, merchant.user_id)["pending_amount"] == "0.00"

    def test_cancel_by_other_merchant(self, db, rules):
        merchant = make_merchant(db, balance="100.00")
        other = make_merchant(db, store_name="Mercado Sul")
        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)

        with pytest.raises(NotFoundError):
            withdrawals.cancel(db, request.id, other.user)

    @pytest.mark.parametrize("first", ["completed", "rejected"])
    def test_terminal_states_admit_no_transition(self, db, rules, admin, first):
        merchant = make_merchant(db, balance="100.00")
        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)
        withdrawals.process(db, request.id, admin, first)

        with pytest.raises(StateConflictError):
            withdrawals.cancel(db, request.id, merchant.user)
        with pytest.raises(StateConflictError):
            withdrawals.process(db, request.id, admin, "completed")

    def test_complete_with_insufficient_balance(self, db, rules, admin):
        merchant = make_merchant(db, balance="100.00")
        request = withdrawals.create_request(db, merchant.user, request_body("80.00"), rules)
        # Balance drained outside the workflow
        from vale_cashback.services import ledger
        ledger.debit(db, merchant.user_id, Decimal("50.00"))
        db.commit()

        with pytest.raises(InsufficientBalanceError):
            withdrawals.process(db, request.id, admin, "completed")

        assert withdrawals.list_requests(db, status="pending")[0].id == request.id

    def test_invalid_status(self, db, rules, admin):
        merchant = make_merchant(db, balance="100.00")
        request = withdrawals.create_request(db, merchant.user, request_body("40.00"), rules)

        with pytest.raises(ValidationError):
            withdrawals.process(db, request.id, admin, "cancelled")

    def test_unknown_request(self, db, admin):
        with pytest.raises(NotFoundError):
            withdrawals.process(db, uuid4(), admin, "completed")
