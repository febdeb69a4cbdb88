# vale_cashback/models/merchant.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Numeric, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import backref, relationship
from vale_cashback.db.base import Base


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    store_name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, default="general")
    address = Column(Text)
    commission_rate = Column(Numeric(5, 2), default=2, nullable=False)
    approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    user = relationship("User", backref=backref("merchant_profile", uselist=False))
