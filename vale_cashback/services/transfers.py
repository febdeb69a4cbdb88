# vale_cashback/services/transfers.py
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from vale_cashback.core.exceptions import NotFoundError, ValidationError
from vale_cashback.core.logger import ledger_logger
from vale_cashback.models.enums import TransferStatus, UserStatus, UserType
from vale_cashback.models.transfer import Transfer
from vale_cashback.models.user import User
from vale_cashback.services import ledger, notifications
from vale_cashback.utils.helpers import isoformat, money_str, utcnow
from vale_cashback.utils.validation_functions import parse_amount, text_field


def serialize(transfer: Transfer, viewer_id: UUID = None) -> dict:
    data = {
        "id": str(transfer.id),
        "from_user_id": str(transfer.from_user_id),
        "to_user_id": str(transfer.to_user_id),
        "from_name": transfer.sender.name if transfer.sender else None,
        "to_name": transfer.recipient.name if transfer.recipient else None,
        "amount": money_str(transfer.amount),
        "description": transfer.description,
        "status": transfer.status.value,
        "created_at": isoformat(transfer.created_at),
    }
    if viewer_id is not None:
        data["direction"] = "outgoing" if transfer.from_user_id == viewer_id else "incoming"
    return data


def find_recipient(db: Session, body: dict):
    query = db.query(User).filter(User.type == UserType.client, User.status == UserStatus.active)
    recipient_id = body.get("recipient_id")
    if recipient_id:
        try:
            return query.filter(User.id == UUID(str(recipient_id))).first()
        except ValueError:
            raise ValidationError("Invalid recipient_id")

    recipient = text_field(body, "recipient")
    if not recipient:
        raise ValidationError("A recipient is required")
    return query.filter(or_(User.email == recipient, User.phone == recipient, User.username == recipient)).first()


def transfer(db: Session, sender: User, body: dict) -> Transfer:
    amount = parse_amount(body.get("amount"))
    recipient = find_recipient(db, body)
    if not recipient:
        raise NotFoundError("Recipient not found")
    if recipient.id == sender.id:
        raise ValidationError("You cannot transfer to yourself")

    try:
        ledger.debit(db, sender.id, amount)
        ledger.credit(db, recipient.id, amount, count_as_earned=False)
        record = Transfer(
            from_user_id=sender.id,
            to_user_id=recipient.id,
            amount=amount,
            description=text_field(body, "description") or "Cashback transfer",
            status=TransferStatus.completed,
            created_at=utcnow()
        )
        db.add(record)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(record)
    ledger_logger.info("Transfer %s: %s -> %s amount=%s", record.id, sender.id, recipient.id, amount)
    notifications.dispatch(db, notifications.transfer_drafts(sender, recipient, amount, record.id))
    return record


def list_transfers(db: Session, user_id: UUID):
    return (
        db.query(Transfer)
        .filter(or_(Transfer.from_user_id == user_id, Transfer.to_user_id == user_id))
        .order_by(Transfer.created_at.desc())
        .all()
    )
