# vale_cashback/models/notification.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Boolean, Enum, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from vale_cashback.db.base import Base
from vale_cashback.models.enums import NotificationType


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(NotificationType, name="notification_type"), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    user = relationship("User", backref="notifications")
