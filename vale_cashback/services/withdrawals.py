# vale_cashback/services/withdrawals.py
"""
Merchant withdrawal workflow.

    pending --admin--> completed   (balance debited)
    pending --admin--> rejected    (no balance change)
    pending --owner--> cancelled   (no balance change)

Pending requests reserve balance: a new request may use at most
``balance - sum(pending)``, computed while the balance row is locked.
"""
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from vale_cashback.core.exceptions import (
    AuthorizationError,
    InsufficientBalanceError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from vale_cashback.core.logger import ledger_logger
from vale_cashback.models.enums import WithdrawalStatus
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.user import User
from vale_cashback.models.withdrawal import WithdrawalRequest
from vale_cashback.services import ledger, notifications
from vale_cashback.services.commission import CommissionRules
from vale_cashback.utils.helpers import isoformat, money_str, percent_of, utcnow
from vale_cashback.utils.validation_functions import parse_amount, text_field

TERMINAL_STATES = (WithdrawalStatus.completed, WithdrawalStatus.rejected, WithdrawalStatus.cancelled)


def serialize(request: WithdrawalRequest) -> dict:
    return {
        "id": str(request.id),
        "user_id": str(request.user_id),
        "merchant_id": str(request.merchant_id),
        "store_name": request.merchant.store_name if request.merchant else None,
        "amount": money_str(request.amount),
        "fee_amount": money_str(request.fee_amount),
        "net_amount": money_str(request.net_amount),
        "status": request.status.value,
        "payment_method": request.payment_method,
        "bank_name": request.bank_name,
        "agency": request.agency,
        "account": request.account,
        "account_holder": request.account_holder,
        "notes": request.notes,
        "processed_by": str(request.processed_by) if request.processed_by else None,
        "processed_at": isoformat(request.processed_at),
        "created_at": isoformat(request.created_at),
    }


def get_wallet(db: Session, user_id: UUID) -> dict:
    current = ledger.current_amount(db, user_id)
    pending_amount, pending_count = ledger.pending_withdrawals(db, user_id)
    return {
        "current_balance": money_str(current),
        "pending_amount": money_str(pending_amount),
        "pending_count": pending_count,
        "available_balance": money_str(max(current - pending_amount, Decimal("0.00"))),
    }


def create_request(db: Session, merchant_user: User, body: dict, rules: CommissionRules) -> WithdrawalRequest:
    merchant = db.query(Merchant).filter(Merchant.user_id == merchant_user.id).first()
    if not merchant:
        raise AuthorizationError("Merchant profile not found")

    amount = parse_amount(body.get("amount"))
    if amount < rules.min_withdrawal:
        raise ValidationError(f"The minimum withdrawal amount is ${money_str(rules.min_withdrawal)}")

    bank_name = text_field(body, "bank_name")
    account = text_field(body, "account")
    missing = [field for field, value in (("bank_name", bank_name), ("account", account)) if not value]
    if missing:
        raise ValidationError("Missing required fields", details={"missing": missing})

    try:
        # Lock the balance row so concurrent requests serialize on the pending sum
        balance_row = ledger.lock_balance(db, merchant_user.id)
        balance = Decimal(str(balance_row.balance)) if balance_row else Decimal("0.00")
        pending_amount, _ = ledger.pending_withdrawals(db, merchant_user.id)
        available = balance - pending_amount

        if amount > available:
            raise InsufficientBalanceError(
                f"Insufficient balance for this withdrawal. Available balance: ${money_str(max(available, Decimal('0.00')))}",
                details={"available": money_str(max(available, Decimal("0.00"))), "requested": money_str(amount)}
            )

        fee_amount = percent_of(amount, rules.withdrawal_fee)
        now = utcnow()
        request = WithdrawalRequest(
            user_id=merchant_user.id,
            merchant_id=merchant.id,
            amount=amount,
            fee_amount=fee_amount,
            net_amount=amount - fee_amount,
            status=WithdrawalStatus.pending,
            payment_method=text_field(body, "payment_method") or "bank_transfer",
            bank_name=bank_name,
            agency=text_field(body, "agency") or None,
            account=account,
            account_holder=text_field(body, "account_holder") or merchant_user.name,
            created_at=now,
            updated_at=now
        )
        db.add(request)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    ledger_logger.info("Withdrawal %s requested by merchant %s: %s", request.id, merchant.id, money_str(amount))

    drafts = [notifications.withdrawal_draft(merchant_user.id, request.id, WithdrawalStatus.pending, amount)]
    drafts += notifications.admin_withdrawal_drafts(db, merchant.store_name, request.id, amount)
    notifications.dispatch(db, drafts)
    return request


def _transition(db: Session, request_id: UUID, target: WithdrawalStatus, values: dict) -> int:
    values = dict(values)
    values[WithdrawalRequest.status] = target
    values[WithdrawalRequest.updated_at] = utcnow()
    return (
        db.query(WithdrawalRequest)
        .filter(WithdrawalRequest.id == request_id, WithdrawalRequest.status == WithdrawalStatus.pending)
        .update(values, synchronize_session=False)
    )


def _load(db: Session, request_id: UUID, owner_id: Optional[UUID] = None) -> WithdrawalRequest:
    query = db.query(WithdrawalRequest).filter(WithdrawalRequest.id == request_id)
    if owner_id is not None:
        query = query.filter(WithdrawalRequest.user_id == owner_id)
    request = query.populate_existing().first()
    if not request:
        raise NotFoundError("Withdrawal request not found")
    return request


def _ensure_pending(request: WithdrawalRequest) -> None:
    if request.status in TERMINAL_STATES:
        raise StateConflictError(
            f"Withdrawal request is already {request.status.value}",
            details={"status": request.status.value}
        )


def complete(db: Session, request_id: UUID, admin: User, notes: str = None) -> WithdrawalRequest:
    request = _load(db, request_id)
    _ensure_pending(request)
    now = utcnow()

    try:
        updated = _transition(db, request.id, WithdrawalStatus.completed, {
            WithdrawalRequest.processed_by: admin.id,
            WithdrawalRequest.processed_at: now,
            WithdrawalRequest.notes: notes,
        })
        if updated != 1:
            raise StateConflictError("Withdrawal request is no longer pending")
        ledger.debit(db, request.user_id, Decimal(str(request.amount)))
        db.commit()
    except Exception:
        db.rollback()
        raise

    request = _load(db, request_id)
    ledger_logger.info("Withdrawal %s completed by admin %s", request.id, admin.id)
    notifications.dispatch(db, [
        notifications.withdrawal_draft(request.user_id, request.id, WithdrawalStatus.completed, request.amount, notes)
    ])
    return request


def reject(db: Session, request_id: UUID, admin: User, reason: str = None) -> WithdrawalRequest:
    request = _load(db, request_id)
    _ensure_pending(request)

    try:
        updated = _transition(db, request.id, WithdrawalStatus.rejected, {
            WithdrawalRequest.processed_by: admin.id,
            WithdrawalRequest.processed_at: utcnow(),
            WithdrawalRequest.notes: reason,
        })
        if updated != 1:
            raise StateConflictError("Withdrawal request is no longer pending")
        db.commit()
    except Exception:
        db.rollback()
        raise

    request = _load(db, request_id)
    ledger_logger.info("Withdrawal %s rejected by admin %s", request.id, admin.id)
    notifications.dispatch(db, [
        notifications.withdrawal_draft(request.user_id, request.id, WithdrawalStatus.rejected, request.amount, reason)
    ])
    return request


def cancel(db: Session, request_id: UUID, merchant_user: User) -> WithdrawalRequest:
    request = _load(db, request_id, owner_id=merchant_user.id)
    _ensure_pending(request)

    try:
        updated = _transition(db, request.id, WithdrawalStatus.cancelled, {
            WithdrawalRequest.processed_at: utcnow(),
            WithdrawalRequest.notes: "Cancelled by merchant",
        })
        if updated != 1:
            raise StateConflictError("Withdrawal request is no longer pending")
        db.commit()
    except Exception:
        db.rollback()
        raise

    request = _load(db, request_id)
    ledger_logger.info("Withdrawal %s cancelled by merchant user %s", request.id, merchant_user.id)
    notifications.dispatch(db, [
        notifications.withdrawal_draft(request.user_id, request.id, WithdrawalStatus.cancelled, request.amount)
    ])
    return request


def process(db: Session, request_id: UUID, admin: User, status: str, notes: str = None) -> WithdrawalRequest:
    """Admin decision on a pending request."""
    if status == WithdrawalStatus.completed.value:
        return complete(db, request_id, admin, notes)
    if status == WithdrawalStatus.rejected.value:
        return reject(db, request_id, admin, notes)
    raise ValidationError(
        "Invalid status",
        details={"allowed": [WithdrawalStatus.completed.value, WithdrawalStatus.rejected.value]}
    )


def list_requests(db: Session, user_id: UUID = None, status: str = None) -> List[WithdrawalRequest]:
    query = db.query(WithdrawalRequest)
    if user_id is not None:
        query = query.filter(WithdrawalRequest.user_id == user_id)
    if status:
        try:
            query = query.filter(WithdrawalRequest.status == WithdrawalStatus(status))
        except ValueError:
            raise ValidationError("Invalid status filter")
    return query.order_by(WithdrawalRequest.created_at.desc()).all()
