# vale_cashback/services/settlement.py
"""
Cashback settlement engine.

A purchase is split between the platform fee, the client's cashback and, on
the client's first qualifying purchase, the referrer's bonus. Every row insert
and balance mutation of one settlement is committed together or rolled back
together; notifications go out only after the commit.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vale_cashback.core.exceptions import (
    AuthorizationError,
    InvalidCodeError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from vale_cashback.core.logger import ledger_logger
from vale_cashback.models.enums import (
    ItemType,
    PaymentMethod,
    ReferralStatus,
    TransactionSource,
    TransactionStatus,
    UserType,
)
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.qr_code import QRCode
from vale_cashback.models.referral import Referral
from vale_cashback.models.transaction import Transaction, TransactionItem
from vale_cashback.models.user import User
from vale_cashback.services import ledger, notifications, qr_codes
from vale_cashback.services.commission import CommissionRules
from vale_cashback.services.fees import calculate_split
from vale_cashback.utils.helpers import isoformat, money_str, utcnow
from vale_cashback.utils.validation_functions import parse_amount


class SettlementInput(BaseModel):
    client_id: UUID
    merchant_id: UUID
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.cash
    source: TransactionSource = TransactionSource.manual
    qr_code_id: Optional[UUID] = None
    description: Optional[str] = None
    idempotency_key: Optional[str] = None


class SettlementResult(BaseModel):
    transaction_id: UUID
    client_id: UUID
    merchant_id: UUID
    merchant_name: str
    amount: Decimal
    platform_fee: Decimal
    client_cashback: Decimal
    merchant_net: Decimal
    referral_bonus: Decimal
    referrer_id: Optional[UUID] = None
    payment_method: PaymentMethod
    source: TransactionSource
    client_balance: Decimal
    created_at: datetime
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "transaction_id": str(self.transaction_id),
            "client_id": str(self.client_id),
            "merchant_id": str(self.merchant_id),
            "merchant_name": self.merchant_name,
            "amount": money_str(self.amount),
            "platform_fee": money_str(self.platform_fee),
            "cashback_earned": money_str(self.client_cashback),
            "merchant_net": money_str(self.merchant_net),
            "referral_bonus": money_str(self.referral_bonus),
            "referral_paid": self.referrer_id is not None,
            "payment_method": self.payment_method.value,
            "source": self.source.value,
            "new_balance": money_str(self.client_balance),
            "created_at": isoformat(self.created_at),
            "replayed": self.replayed,
        }


def settle(db: Session, data: SettlementInput, rules: CommissionRules, now: datetime = None) -> SettlementResult:
    now = now or utcnow()
    amount = parse_amount(data.amount)

    if data.idempotency_key:
        replay = lookup_replay(
            db, data.idempotency_key, data.client_id,
            merchant_id=data.merchant_id, amount=amount, qr_code_id=data.qr_code_id
        )
        if replay is not None:
            return replay

    merchant = db.get(Merchant, data.merchant_id)
    if not merchant:
        raise NotFoundError("Merchant not found")
    if not merchant.approved:
        raise AuthorizationError("Merchant is not approved to receive payments")
    if not merchant.user or not merchant.user.is_active:
        raise AuthorizationError("Merchant account is not active")

    client = db.get(User, data.client_id)
    if not client or client.type != UserType.client:
        raise NotFoundError("Client not found")
    if not client.is_active:
        raise AuthorizationError("Client account is not active")

    qr = None
    if data.source == TransactionSource.qrcode:
        qr = _load_qr(db, data, merchant, amount, now)

    referral = None
    if amount >= rules.referral_min_amount:
        referral = (
            db.query(Referral)
            .filter(Referral.referred_id == client.id, Referral.status == ReferralStatus.pending)
            .first()
        )

    split = calculate_split(amount, rules, with_referral=referral is not None)
    referral_bonus = split.referral_bonus
    referrer_id = None

    try:
        transaction = Transaction(
            user_id=client.id,
            merchant_id=merchant.id,
            amount=amount,
            cashback_amount=split.client_cashback,
            platform_fee=split.platform_fee,
            merchant_net=split.merchant_net,
            referral_bonus=Decimal("0.00"),
            description=data.description or f"Purchase at {merchant.store_name}",
            status=TransactionStatus.completed,
            payment_method=data.payment_method,
            source=data.source,
            qr_code_id=qr.id if qr else None,
            idempotency_key=data.idempotency_key,
            created_at=now,
            updated_at=now
        )
        db.add(transaction)
        db.flush()

        if qr:
            qr_codes.consume(db, qr.id, client.id, now)

        if data.payment_method == PaymentMethod.wallet:
            ledger.debit(db, client.id, amount)
            ledger.credit(db, merchant.user_id, split.merchant_net)

        ledger.credit(db, client.id, split.client_cashback)

        if referral is not None:
            # Only the settlement that flips pending -> paid pays the bonus
            paid = (
                db.query(Referral)
                .filter(Referral.id == referral.id, Referral.status == ReferralStatus.pending)
                .update(
                    {
                        Referral.status: ReferralStatus.paid,
                        Referral.bonus: referral_bonus,
                        Referral.transaction_id: transaction.id,
                        Referral.paid_at: now,
                    },
                    synchronize_session=False
                )
            )
            if paid == 1:
                referrer_id = referral.referrer_id
                ledger.credit(db, referrer_id, referral_bonus)
                transaction.referral_bonus = referral_bonus
            else:
                referral_bonus = Decimal("0.00")
        else:
            referral_bonus = Decimal("0.00")

        _add_items(db, transaction, client, merchant, split, referrer_id, referral_bonus)
        db.commit()
    except IntegrityError:
        db.rollback()
        if data.idempotency_key:
            replay = lookup_replay(
                db, data.idempotency_key, data.client_id,
                merchant_id=data.merchant_id, amount=amount, qr_code_id=data.qr_code_id
            )
            if replay is not None:
                return replay
        ledger_logger.exception("Settlement failed on an integrity error for client %s", data.client_id)
        raise
    except Exception:
        db.rollback()
        raise

    ledger_logger.info(
        "Settled transaction %s: amount=%s fee=%s cashback=%s referral=%s net=%s method=%s source=%s",
        transaction.id, amount, split.platform_fee, split.client_cashback,
        referral_bonus, split.merchant_net, data.payment_method.value, data.source.value
    )

    result = SettlementResult(
        transaction_id=transaction.id,
        client_id=client.id,
        merchant_id=merchant.id,
        merchant_name=merchant.store_name,
        amount=amount,
        platform_fee=split.platform_fee,
        client_cashback=split.client_cashback,
        merchant_net=split.merchant_net,
        referral_bonus=referral_bonus,
        referrer_id=referrer_id,
        payment_method=data.payment_method,
        source=data.source,
        client_balance=ledger.current_amount(db, client.id),
        created_at=now
    )

    drafts = [
        notifications.cashback_draft(client.id, merchant.store_name, amount, split.client_cashback, result.transaction_id),
        notifications.merchant_sale_draft(merchant.user_id, client.name, amount, result.transaction_id),
    ]
    if referrer_id:
        drafts.append(notifications.referral_draft(referrer_id, client.name, referral_bonus, result.transaction_id))
    notifications.dispatch(db, drafts)

    return result


def _load_qr(db: Session, data: SettlementInput, merchant: Merchant, amount: Decimal, now: datetime) -> QRCode:
    if not data.qr_code_id:
        raise ValidationError("qr_code_id is required for QR code payments")
    qr = db.get(QRCode, data.qr_code_id)
    if not qr:
        raise InvalidCodeError("QR code not found or invalid")
    qr_codes.check_redeemable(qr, now)
    if qr.user_id != merchant.user_id:
        raise ValidationError("QR code does not belong to this merchant")
    if qr.amount is not None and Decimal(str(qr.amount)) != amount:
        raise ValidationError("Amount does not match the QR code")
    return qr


def _add_items(db, transaction, client, merchant, split, referrer_id, referral_bonus):
    items = [
        TransactionItem(
            transaction_id=transaction.id,
            user_id=None,
            item_type=ItemType.platform_fee,
            amount=split.platform_fee,
            description="Platform fee"
        ),
        TransactionItem(
            transaction_id=transaction.id,
            user_id=client.id,
            item_type=ItemType.client_cashback,
            amount=split.client_cashback,
            description="Client cashback"
        ),
        TransactionItem(
            transaction_id=transaction.id,
            user_id=merchant.user_id,
            item_type=ItemType.merchant_net,
            amount=split.merchant_net,
            description="Merchant net proceeds"
        ),
    ]
    if referrer_id:
        items.append(TransactionItem(
            transaction_id=transaction.id,
            user_id=referrer_id,
            item_type=ItemType.referral_bonus,
            amount=referral_bonus,
            description="Referral bonus"
        ))
    db.add_all(items)


def lookup_replay(db: Session, key: str, client_id: UUID, merchant_id: UUID = None,
                  amount: Decimal = None, qr_code_id: UUID = None) -> Optional[SettlementResult]:
    """
    Result of an earlier settlement under ``key``, or None if the key is new.

    The optional arguments describe the incoming request; a key reused for a
    different merchant, amount or QR code is a conflict, not a replay.
    """
    transaction = db.query(Transaction).filter(Transaction.idempotency_key == key).first()
    if transaction is None:
        return None
    if transaction.user_id != client_id:
        raise StateConflictError("Idempotency key already used by another request")

    mismatched = [
        field for field, stored, incoming in (
            ("merchant_id", transaction.merchant_id, merchant_id),
            ("amount", Decimal(str(transaction.amount)), amount),
            ("qr_code_id", transaction.qr_code_id, qr_code_id),
        )
        if incoming is not None and stored != incoming
    ]
    if mismatched:
        raise StateConflictError(
            "Idempotency key already used for a different payment",
            details={"mismatched": mismatched}
        )

    referral = (
        db.query(Referral)
        .filter(Referral.transaction_id == transaction.id, Referral.status == ReferralStatus.paid)
        .first()
    )
    ledger_logger.info("Replayed transaction %s for idempotency key", transaction.id)
    return SettlementResult(
        transaction_id=transaction.id,
        client_id=transaction.user_id,
        merchant_id=transaction.merchant_id,
        merchant_name=transaction.merchant.store_name,
        amount=Decimal(str(transaction.amount)),
        platform_fee=Decimal(str(transaction.platform_fee)),
        client_cashback=Decimal(str(transaction.cashback_amount)),
        merchant_net=Decimal(str(transaction.merchant_net)),
        referral_bonus=Decimal(str(transaction.referral_bonus)),
        referrer_id=referral.referrer_id if referral else None,
        payment_method=transaction.payment_method,
        source=transaction.source,
        client_balance=ledger.current_amount(db, transaction.user_id),
        created_at=transaction.created_at,
        replayed=True
    )
