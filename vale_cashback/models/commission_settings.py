# vale_cashback/models/commission_settings.py
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Numeric, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from vale_cashback.db.base import Base


class CommissionSettings(Base):
    __tablename__ = "commission_settings"

    # Rates are percentages: 5.00 means 5%
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    platform_fee = Column(Numeric(5, 2), default=5, nullable=False)
    client_cashback = Column(Numeric(5, 2), default=2, nullable=False)
    referral_bonus = Column(Numeric(5, 2), default=1, nullable=False)
    max_cashback_bonus = Column(Numeric(5, 2), default=10, nullable=False)
    min_withdrawal = Column(Numeric(15, 2), default=20, nullable=False)
    withdrawal_fee = Column(Numeric(5, 2), default=5, nullable=False)
    referral_min_amount = Column(Numeric(15, 2), default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
