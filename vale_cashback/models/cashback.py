# vale_cashback/models/cashback.py
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from vale_cashback.db.base import Base


class CashbackBalance(Base):
    __tablename__ = "cashbacks"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_cashbacks_balance_non_negative"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    balance = Column(Numeric(15, 2), default=0, nullable=False)
    total_earned = Column(Numeric(15, 2), default=0, nullable=False)
    total_spent = Column(Numeric(15, 2), default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
