# vale_cashback/api/routes/admin.py

from uuid import UUID
from fastapi import APIRouter, Query, Request, Depends
from sqlalchemy.orm import Session
from vale_cashback.db.get_db import get_db
from vale_cashback.core.exceptions import NotFoundError, ValidationError
from vale_cashback.core.logger import app_logger
from vale_cashback.models.enums import NotificationType, UserStatus
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.user import User
from vale_cashback.services import notifications, withdrawals
from vale_cashback.services.commission import load_rules, update_settings
from vale_cashback.utils.auth import require_admin
from vale_cashback.utils.helpers import isoformat, money_str, success_response, utcnow
from vale_cashback.utils.validation_functions import parse_rate, read_json_body, text_field

router = APIRouter()


@router.get("/settings/commission")
def get_commission_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return success_response(data=load_rules(db).to_dict())


@router.put("/settings/commission")
async def update_commission_settings(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    body = await read_json_body(request)
    rules = update_settings(db, body, current_user)
    return success_response(data=rules.to_dict(), message="Commission settings updated")


@router.patch("/merchants/{merchant_id}/approve")
async def approve_merchant(
    merchant_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    body = await read_json_body(request) if await request.body() else {}
    approved = body.get("approved", True)
    if not isinstance(approved, bool):
        raise ValidationError("approved must be a boolean")
    commission_rate = None
    if body.get("commission_rate") is not None:
        commission_rate = parse_rate(body["commission_rate"], "commission_rate")

    merchant = db.get(Merchant, merchant_id)
    if not merchant:
        raise NotFoundError("Merchant not found")

    merchant.approved = approved
    if commission_rate is not None:
        merchant.commission_rate = commission_rate
    db.commit()
    db.refresh(merchant)
    app_logger.info("Merchant %s approval set to %s by %s", merchant.id, approved, current_user.id)

    notifications.dispatch(db, [notifications.NotificationDraft(
        user_id=merchant.user_id,
        type=NotificationType.system,
        title="Store approved" if approved else "Store approval revoked",
        message=(
            f"{merchant.store_name} can now receive payments."
            if approved else f"{merchant.store_name} can no longer receive payments."
        ),
        data={"merchant_id": str(merchant.id), "approved": approved}
    )])

    return success_response(
        data={
            "id": str(merchant.id),
            "user_id": str(merchant.user_id),
            "store_name": merchant.store_name,
            "commission_rate": money_str(merchant.commission_rate),
            "approved": merchant.approved
        },
        message="Merchant approved" if approved else "Merchant approval revoked"
    )


@router.patch("/users/{user_id}/status")
async def update_user_status(
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    body = await read_json_body(request)
    try:
        status = UserStatus(body.get("status"))
    except ValueError:
        raise ValidationError(
            "Invalid status",
            details={"allowed": [s.value for s in UserStatus]}
        )

    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.id == current_user.id:
        raise ValidationError("You cannot change your own status")

    user.status = status
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    app_logger.info("User %s status set to %s by %s", user.id, status.value, current_user.id)

    return success_response(
        data={
            "id": str(user.id),
            "status": user.status.value,
            "updated_at": isoformat(user.updated_at)
        },
        message="User status updated"
    )


@router.get("/withdrawal-requests")
def list_withdrawal_requests(
    status: str = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    requests = withdrawals.list_requests(db, status=status)
    return success_response(data=[withdrawals.serialize(r) for r in requests])


@router.patch("/withdrawal-requests/{request_id}")
async def process_withdrawal_request(
    request_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    body = await read_json_body(request)
    withdrawal = withdrawals.process(
        db,
        request_id,
        current_user,
        text_field(body, "status"),
        text_field(body, "notes") or None
    )
    return success_response(
        data=withdrawals.serialize(withdrawal),
        message=f"Withdrawal request {withdrawal.status.value}"
    )
