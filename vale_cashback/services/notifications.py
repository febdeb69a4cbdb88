# vale_cashback/services/notifications.py
"""
Best-effort user notifications.

Drafts are written after the ledger transaction has committed. A failure here
is logged and dropped: it never retries and never touches balances.
"""
from typing import Iterable, List, Optional
from uuid import UUID

import requests
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vale_cashback.core import config
from vale_cashback.core.logger import app_logger
from vale_cashback.models.enums import NotificationType, UserStatus, UserType, WithdrawalStatus
from vale_cashback.models.notification import Notification
from vale_cashback.models.user import User
from vale_cashback.utils.helpers import money_str, utcnow


class NotificationDraft(BaseModel):
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: Optional[dict] = None


def dispatch(db: Session, drafts: Iterable[NotificationDraft]) -> List[Notification]:
    drafts = list(drafts)
    if not drafts:
        return []

    created = []
    try:
        for draft in drafts:
            notification = Notification(
                user_id=draft.user_id,
                type=draft.type,
                title=draft.title,
                message=draft.message,
                data=draft.data,
                read=False,
                created_at=utcnow()
            )
            db.add(notification)
            created.append(notification)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        app_logger.exception("Failed to store %d notification(s)", len(drafts))
        return []

    if config.NOTIFICATION_WEBHOOK_URL:
        push_webhook(drafts)

    return created


def push_webhook(drafts: List[NotificationDraft]) -> None:
    payload = {"notifications": [draft.model_dump(mode="json") for draft in drafts]}
    try:
        response = requests.post(
            config.NOTIFICATION_WEBHOOK_URL,
            json=payload,
            timeout=config.WEBHOOK_TIMEOUT
        )
        response.raise_for_status()
    except requests.RequestException as e:
        app_logger.warning("Notification webhook failed: %s", e)


# --- Drafts -----------------------------------------------------------------

def cashback_draft(client_id: UUID, store_name: str, amount, cashback, transaction_id: UUID) -> NotificationDraft:
    return NotificationDraft(
        user_id=client_id,
        type=NotificationType.cashback,
        title="Cashback received",
        message=f"You made a purchase of ${money_str(amount)} at {store_name} and earned ${money_str(cashback)} in cashback.",
        data={"transaction_id": str(transaction_id), "amount": money_str(amount), "cashback": money_str(cashback)}
    )


def merchant_sale_draft(merchant_user_id: UUID, client_name: str, amount, transaction_id: UUID) -> NotificationDraft:
    return NotificationDraft(
        user_id=merchant_user_id,
        type=NotificationType.transaction,
        title="New sale registered",
        message=f"{client_name} made a purchase of ${money_str(amount)}.",
        data={"transaction_id": str(transaction_id), "amount": money_str(amount)}
    )


def referral_draft(referrer_id: UUID, referred_name: str, bonus, transaction_id: UUID) -> NotificationDraft:
    return NotificationDraft(
        user_id=referrer_id,
        type=NotificationType.referral,
        title="Referral bonus",
        message=f"You earned ${money_str(bonus)} because {referred_name} made their first purchase.",
        data={"transaction_id": str(transaction_id), "bonus": money_str(bonus)}
    )


def transfer_drafts(sender: User, recipient: User, amount, transfer_id: UUID) -> List[NotificationDraft]:
    data = {"transfer_id": str(transfer_id), "amount": money_str(amount)}
    return [
        NotificationDraft(
            user_id=sender.id,
            type=NotificationType.transfer,
            title="Transfer sent",
            message=f"You sent ${money_str(amount)} to {recipient.name}.",
            data=data
        ),
        NotificationDraft(
            user_id=recipient.id,
            type=NotificationType.transfer,
            title="Transfer received",
            message=f"You received ${money_str(amount)} from {sender.name}.",
            data=data
        ),
    ]


WITHDRAWAL_TITLES = {
    WithdrawalStatus.pending: "Withdrawal request submitted",
    WithdrawalStatus.completed: "Withdrawal request approved",
    WithdrawalStatus.rejected: "Withdrawal request rejected",
    WithdrawalStatus.cancelled: "Withdrawal request cancelled",
}


def withdrawal_draft(user_id: UUID, request_id: UUID, status: WithdrawalStatus, amount, notes: str = None) -> NotificationDraft:
    message = f"Your withdrawal request of ${money_str(amount)} is {status.value}."
    if notes:
        message += f" Notes: {notes}"
    return NotificationDraft(
        user_id=user_id,
        type=NotificationType.withdrawal,
        title=WITHDRAWAL_TITLES[status],
        message=message,
        data={"withdrawal_id": str(request_id), "status": status.value, "amount": money_str(amount)}
    )


def admin_withdrawal_drafts(db: Session, store_name: str, request_id: UUID, amount) -> List[NotificationDraft]:
    admin_ids = [
        row.id for row in db.query(User.id).filter(
            User.type == UserType.admin,
            User.status == UserStatus.active
        ).all()
    ]
    return [
        NotificationDraft(
            user_id=admin_id,
            type=NotificationType.withdrawal,
            title="New withdrawal request",
            message=f"{store_name} requested a withdrawal of ${money_str(amount)}.",
            data={"withdrawal_id": str(request_id), "amount": money_str(amount)}
        )
        for admin_id in admin_ids
    ]
