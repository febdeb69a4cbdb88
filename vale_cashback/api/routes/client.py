# vale_cashback/api/routes/client.py

from decimal import Decimal
from fastapi import APIRouter, Query, Request, Depends, Header
from sqlalchemy import desc, func
from sqlalchemy.orm import Session
from vale_cashback.db.get_db import get_db
from vale_cashback.core.exceptions import ValidationError
from vale_cashback.models.cashback import CashbackBalance
from vale_cashback.models.enums import PaymentMethod, ReferralStatus, TransactionSource
from vale_cashback.models.referral import Referral
from vale_cashback.models.transaction import Transaction
from vale_cashback.models.user import User
from vale_cashback.services import qr_codes, transfers
from vale_cashback.services.commission import CommissionRules, get_commission_rules
from vale_cashback.services.settlement import SettlementInput, lookup_replay, settle
from vale_cashback.utils.auth import require_client
from vale_cashback.utils.helpers import isoformat, money_str, success_response
from vale_cashback.utils.validation_functions import parse_amount, parse_payment_method, read_json_body

router = APIRouter()


def serialize_transaction(transaction: Transaction) -> dict:
    return {
        "id": str(transaction.id),
        "merchant_id": str(transaction.merchant_id),
        "store_name": transaction.merchant.store_name if transaction.merchant else None,
        "amount": money_str(transaction.amount),
        "cashback_amount": money_str(transaction.cashback_amount),
        "description": transaction.description,
        "status": transaction.status.value,
        "payment_method": transaction.payment_method.value,
        "source": transaction.source.value,
        "created_at": isoformat(transaction.created_at),
    }


# Resolve a scanned payment code without changing it
@router.get("/verify-qr/{code}")
def verify_qr(
    code: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client)
):
    intent = qr_codes.verify(db, code)
    return success_response(data=intent.to_dict(), message="QR code is valid")


# Pay a merchant's QR code
@router.post("/process-payment")
async def process_payment(
    request: Request,
    idempotency_key: str = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    rules: CommissionRules = Depends(get_commission_rules),
    current_user: User = Depends(require_client)
):
    body = await read_json_body(request)
    reference = body.get("qr_code_id") or body.get("code")
    if not reference:
        raise ValidationError("qr_code_id or code is required")

    # A retry of a settled payment must not trip over its own used code
    qr = qr_codes.find_code(db, reference)
    if idempotency_key and qr is not None:
        replay = lookup_replay(db, idempotency_key, current_user.id, qr_code_id=qr.id)
        if replay is not None:
            return success_response(data=replay.to_dict(), message="Payment already processed")

    intent = qr_codes.verify(db, reference)
    if body.get("amount") is not None and parse_amount(body["amount"]) != intent.amount:
        raise ValidationError("Amount does not match the QR code")

    result = settle(db, SettlementInput(
        client_id=current_user.id,
        merchant_id=intent.merchant_id,
        amount=intent.amount,
        payment_method=parse_payment_method(body.get("payment_type"), default=PaymentMethod.wallet),
        source=TransactionSource.qrcode,
        qr_code_id=intent.qr_code_id,
        description=intent.description,
        idempotency_key=idempotency_key
    ), rules)

    return success_response(data=result.to_dict(), message="Payment processed successfully")


@router.get("/cashbacks")
def get_cashbacks(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client)
):
    balance = db.query(CashbackBalance).filter(CashbackBalance.user_id == current_user.id).first()

    recent = (
        db.query(Transaction)
        .filter(Transaction.user_id == current_user.id, Transaction.cashback_amount > 0)
        .order_by(desc(Transaction.created_at))
        .limit(10)
        .all()
    )

    return success_response(data={
        "balance": money_str(balance.balance if balance else 0),
        "total_earned": money_str(balance.total_earned if balance else 0),
        "total_spent": money_str(balance.total_spent if balance else 0),
        "updated_at": isoformat(balance.updated_at) if balance else None,
        "recent": [serialize_transaction(t) for t in recent]
    })


@router.get("/transactions")
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client)
):
    query = db.query(Transaction).filter(Transaction.user_id == current_user.id)

    total_items = query.count()
    total_pages = (total_items + limit - 1) // limit
    transactions = query.order_by(desc(Transaction.created_at)).offset((page - 1) * limit).limit(limit).all()

    totals = db.query(
        func.coalesce(func.sum(Transaction.amount), 0),
        func.coalesce(func.sum(Transaction.cashback_amount), 0)
    ).filter(Transaction.user_id == current_user.id).one()

    return success_response(
        data=[serialize_transaction(t) for t in transactions],
        pagination={
            "current_page": page,
            "total_pages": total_pages,
            "total_items": total_items,
            "items_per_page": limit
        },
        summary={
            "total_spent": money_str(totals[0]),
            "total_cashback": money_str(totals[1])
        }
    )


@router.get("/transfers")
def list_transfers(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client)
):
    records = transfers.list_transfers(db, current_user.id)
    return success_response(data=[transfers.serialize(t, viewer_id=current_user.id) for t in records])


@router.post("/transfers")
async def create_transfer(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client)
):
    body = await read_json_body(request)
    record = transfers.transfer(db, current_user, body)
    return success_response(
        data=transfers.serialize(record, viewer_id=current_user.id),
        message="Transfer completed successfully"
    )


@router.get("/referrals")
def list_referrals(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client)
):
    referrals = (
        db.query(Referral)
        .filter(Referral.referrer_id == current_user.id)
        .order_by(desc(Referral.created_at))
        .all()
    )

    total_bonus = sum(
        (Decimal(str(r.bonus)) for r in referrals if r.status == ReferralStatus.paid),
        Decimal("0.00")
    )

    return success_response(
        data={
            "invitation_code": current_user.invitation_code,
            "referrals": [{
                "id": str(r.id),
                "referred_id": str(r.referred_id),
                "referred_name": r.referred.name if r.referred else None,
                "bonus": money_str(r.bonus),
                "status": r.status.value,
                "paid_at": isoformat(r.paid_at),
                "created_at": isoformat(r.created_at)
            } for r in referrals]
        },
        summary={
            "total_referrals": len(referrals),
            "paid_referrals": sum(1 for r in referrals if r.status == ReferralStatus.paid),
            "total_bonus": money_str(total_bonus)
        }
    )
