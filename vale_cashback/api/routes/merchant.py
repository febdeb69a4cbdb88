# vale_cashback/api/routes/merchant.py

from uuid import UUID
from fastapi import APIRouter, Query, Request, Depends, Header
from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session
from vale_cashback.db.get_db import get_db
from vale_cashback.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from vale_cashback.models.enums import TransactionSource, UserType
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.transaction import Transaction
from vale_cashback.models.user import User
from vale_cashback.services import qr_codes, withdrawals
from vale_cashback.services.commission import CommissionRules, get_commission_rules
from vale_cashback.services.settlement import SettlementInput, settle
from vale_cashback.utils.auth import require_merchant
from vale_cashback.utils.helpers import isoformat, money_str, success_response
from vale_cashback.utils.validation_functions import (
    parse_amount,
    parse_payment_method,
    read_json_body,
    text_field,
)

router = APIRouter()


def get_merchant_profile(db: Session, user: User) -> Merchant:
    merchant = db.query(Merchant).filter(Merchant.user_id == user.id).first()
    if not merchant:
        raise AuthorizationError("Merchant profile not found")
    return merchant


def find_client(db: Session, body: dict) -> User:
    """Resolve the paying client by id, email, phone or invitation code."""
    client_id = body.get("client_id")
    if client_id:
        try:
            client_id = UUID(str(client_id))
        except ValueError:
            raise ValidationError("Invalid client_id")
        client = db.get(User, client_id)
    else:
        identifier = text_field(body, "client")
        if not identifier:
            raise ValidationError("client_id is required")
        client = db.query(User).filter(or_(
            User.email == identifier.lower(),
            User.phone == identifier,
            User.invitation_code == identifier
        )).first()

    if not client or client.type != UserType.client:
        raise NotFoundError("Client not found")
    return client


# Issue a payment QR code for the client to scan
@router.post("/generate-payment")
async def generate_payment(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_merchant)
):
    body = await read_json_body(request)
    qr = qr_codes.generate_payment(
        db,
        current_user,
        body.get("amount"),
        description=text_field(body, "description") or None,
        payment_type=text_field(body, "payment_type") or None
    )

    return success_response(
        data={
            "qr_code_id": str(qr.id),
            "code": qr.code,
            "amount": money_str(qr.amount),
            "description": qr.description,
            "qr_data": qr.data,
            "expires_at": isoformat(qr.expires_at)
        },
        message="Payment QR code generated"
    )


# Register an in-store sale
@router.post("/sales")
async def register_sale(
    request: Request,
    idempotency_key: str = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    rules: CommissionRules = Depends(get_commission_rules),
    current_user: User = Depends(require_merchant)
):
    body = await read_json_body(request)
    merchant = get_merchant_profile(db, current_user)
    client = find_client(db, body)

    result = settle(db, SettlementInput(
        client_id=client.id,
        merchant_id=merchant.id,
        amount=parse_amount(body.get("amount")),
        payment_method=parse_payment_method(body.get("payment_method")),
        source=TransactionSource.manual,
        description=text_field(body, "description") or None,
        idempotency_key=idempotency_key
    ), rules)

    return success_response(data=result.to_dict(), message="Sale registered successfully")


@router.get("/sales")
def list_sales(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_merchant)
):
    merchant = get_merchant_profile(db, current_user)
    query = db.query(Transaction).filter(Transaction.merchant_id == merchant.id)

    total_items = query.count()
    total_pages = (total_items + limit - 1) // limit
    sales = query.order_by(desc(Transaction.created_at)).offset((page - 1) * limit).limit(limit).all()

    totals = db.query(
        func.coalesce(func.sum(Transaction.amount), 0),
        func.coalesce(func.sum(Transaction.platform_fee), 0),
        func.coalesce(func.sum(Transaction.merchant_net), 0)
    ).filter(Transaction.merchant_id == merchant.id).one()

    return success_response(
        data=[{
            "id": str(t.id),
            "client_id": str(t.user_id),
            "client_name": t.client.name if t.client else None,
            "amount": money_str(t.amount),
            "platform_fee": money_str(t.platform_fee),
            "cashback_amount": money_str(t.cashback_amount),
            "merchant_net": money_str(t.merchant_net),
            "payment_method": t.payment_method.value,
            "source": t.source.value,
            "status": t.status.value,
            "created_at": isoformat(t.created_at)
        } for t in sales],
        pagination={
            "current_page": page,
            "total_pages": total_pages,
            "total_items": total_items,
            "items_per_page": limit
        },
        summary={
            "total_sales": money_str(totals[0]),
            "total_fees": money_str(totals[1]),
            "total_net": money_str(totals[2])
        }
    )


@router.get("/wallet")
def get_wallet(
    db: Session = Depends(get_db),
    rules: CommissionRules = Depends(get_commission_rules),
    current_user: User = Depends(require_merchant)
):
    wallet = withdrawals.get_wallet(db, current_user.id)
    wallet["min_withdrawal"] = money_str(rules.min_withdrawal)
    wallet["withdrawal_fee"] = money_str(rules.withdrawal_fee)
    return success_response(data=wallet)


@router.get("/withdrawal-requests")
def list_withdrawal_requests(
    status: str = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_merchant)
):
    requests = withdrawals.list_requests(db, user_id=current_user.id, status=status)
    return success_response(data=[withdrawals.serialize(r) for r in requests])


@router.post("/withdrawal-requests")
async def create_withdrawal_request(
    request: Request,
    db: Session = Depends(get_db),
    rules: CommissionRules = Depends(get_commission_rules),
    current_user: User = Depends(require_merchant)
):
    body = await read_json_body(request)
    withdrawal = withdrawals.create_request(db, current_user, body, rules)
    return success_response(
        data=withdrawals.serialize(withdrawal),
        message="Withdrawal request created successfully"
    )


@router.delete("/withdrawal-requests/{request_id}")
def cancel_withdrawal_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_merchant)
):
    withdrawal = withdrawals.cancel(db, request_id, current_user)
    return success_response(
        data=withdrawals.serialize(withdrawal),
        message="Withdrawal request cancelled"
    )
