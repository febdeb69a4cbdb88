# vale_cashback/models/qr_code.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Numeric, Enum, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from vale_cashback.db.base import Base
from vale_cashback.models.enums import QRCodeStatus, QRCodeType


class QRCode(Base):
    __tablename__ = "qr_codes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    code = Column(Text, unique=True, nullable=False)
    amount = Column(Numeric(15, 2))
    description = Column(Text)
    type = Column(Enum(QRCodeType, name="qr_code_type"), nullable=False, default=QRCodeType.payment)
    data = Column(JSON)
    status = Column(Enum(QRCodeStatus, name="qr_code_status"), nullable=False, default=QRCodeStatus.active)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime)
    used_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    issuer = relationship("User", foreign_keys=[user_id])
