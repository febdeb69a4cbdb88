# vale_cashback/services/ledger.py
"""
Atomic balance operations over the ``cashbacks`` table.

Every mutation is a single in-place UPDATE so concurrent settlements against
the same user never lose an increment. Nothing here commits; callers own the
transaction.
"""
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from vale_cashback.core.exceptions import InsufficientBalanceError
from vale_cashback.models.cashback import CashbackBalance
from vale_cashback.models.enums import WithdrawalStatus
from vale_cashback.models.withdrawal import WithdrawalRequest
from vale_cashback.utils.helpers import utcnow


def get_balance(db: Session, user_id: UUID) -> Optional[CashbackBalance]:
    return (
        db.query(CashbackBalance)
        .filter(CashbackBalance.user_id == user_id)
        .populate_existing()
        .first()
    )


def ensure_balance(db: Session, user_id: UUID) -> CashbackBalance:
    balance = get_balance(db, user_id)
    if not balance:
        balance = CashbackBalance(
            user_id=user_id,
            balance=Decimal("0.00"),
            total_earned=Decimal("0.00"),
            total_spent=Decimal("0.00"),
            updated_at=utcnow()
        )
        db.add(balance)
        db.flush()
    return balance


def lock_balance(db: Session, user_id: UUID) -> Optional[CashbackBalance]:
    """Row-lock the user's balance for the rest of the transaction (no-op on SQLite)."""
    return (
        db.query(CashbackBalance)
        .filter(CashbackBalance.user_id == user_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def current_amount(db: Session, user_id: UUID) -> Decimal:
    value = db.query(CashbackBalance.balance).filter(CashbackBalance.user_id == user_id).scalar()
    return Decimal(value) if value is not None else Decimal("0.00")


def credit(db: Session, user_id: UUID, amount: Decimal, count_as_earned: bool = True) -> None:
    ensure_balance(db, user_id)
    values = {
        CashbackBalance.balance: CashbackBalance.balance + amount,
        CashbackBalance.updated_at: utcnow(),
    }
    if count_as_earned:
        values[CashbackBalance.total_earned] = CashbackBalance.total_earned + amount
    db.query(CashbackBalance).filter(CashbackBalance.user_id == user_id).update(
        values, synchronize_session=False
    )


def debit(db: Session, user_id: UUID, amount: Decimal, count_as_spent: bool = True) -> None:
    """Decrement only if the balance covers ``amount``; raise otherwise."""
    values = {
        CashbackBalance.balance: CashbackBalance.balance - amount,
        CashbackBalance.updated_at: utcnow(),
    }
    if count_as_spent:
        values[CashbackBalance.total_spent] = CashbackBalance.total_spent + amount
    updated = (
        db.query(CashbackBalance)
        .filter(CashbackBalance.user_id == user_id, CashbackBalance.balance >= amount)
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        raise InsufficientBalanceError(
            "Insufficient balance",
            details={"required": str(amount), "available": str(current_amount(db, user_id))}
        )


def pending_withdrawals(db: Session, user_id: UUID, exclude_id: Optional[UUID] = None):
    """Return (total, count) of the user's pending withdrawal requests."""
    query = db.query(
        func.coalesce(func.sum(WithdrawalRequest.amount), 0),
        func.count(WithdrawalRequest.id)
    ).filter(
        WithdrawalRequest.user_id == user_id,
        WithdrawalRequest.status == WithdrawalStatus.pending
    )
    if exclude_id is not None:
        query = query.filter(WithdrawalRequest.id != exclude_id)
    total, count = query.one()
    return Decimal(str(total)).quantize(Decimal("0.01")), int(count)
