# vale_cashback/models/referral.py
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Numeric, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from vale_cashback.db.base import Base
from vale_cashback.models.enums import ReferralStatus


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    referrer_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    # One referral relationship per referred user
    referred_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False)
    bonus = Column(Numeric(15, 2), default=0, nullable=False)
    status = Column(Enum(ReferralStatus, name="referral_status"), nullable=False, default=ReferralStatus.pending)
    transaction_id = Column(UUID(as_uuid=True), ForeignKey("transactions.id"))
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    referrer = relationship("User", foreign_keys=[referrer_id])
    referred = relationship("User", foreign_keys=[referred_id])
