# vale_cashback/api/routes/notifications.py

from uuid import UUID
from fastapi import APIRouter, Query, Depends
from sqlalchemy import desc
from sqlalchemy.orm import Session
from vale_cashback.db.get_db import get_db
from vale_cashback.core.exceptions import NotFoundError
from vale_cashback.models.notification import Notification
from vale_cashback.models.user import User
from vale_cashback.utils.auth import get_current_user
from vale_cashback.utils.helpers import isoformat, success_response

router = APIRouter()


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "read": notification.read,
        "created_at": isoformat(notification.created_at),
    }


@router.get("/")
def list_notifications(
    unread: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread:
        query = query.filter(Notification.read.is_(False))

    total_items = query.count()
    total_pages = (total_items + limit - 1) // limit
    items = query.order_by(desc(Notification.created_at)).offset((page - 1) * limit).limit(limit).all()

    unread_count = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.read.is_(False)
    ).count()

    return success_response(
        data=[serialize_notification(n) for n in items],
        pagination={
            "current_page": page,
            "total_pages": total_pages,
            "total_items": total_items,
            "items_per_page": limit
        },
        summary={"unread": unread_count}
    )


@router.patch("/{notification_id}/read")
def mark_as_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == current_user.id
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")

    notification.read = True
    db.commit()
    return success_response(data=serialize_notification(notification), message="Notification marked as read")
