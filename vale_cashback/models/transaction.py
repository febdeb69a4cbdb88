# vale_cashback/models/transaction.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Numeric, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from vale_cashback.db.base import Base
from vale_cashback.models.enums import ItemType, PaymentMethod, TransactionSource, TransactionStatus


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    merchant_id = Column(UUID(as_uuid=True), ForeignKey("merchants.id"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    cashback_amount = Column(Numeric(15, 2), nullable=False)
    platform_fee = Column(Numeric(15, 2), default=0, nullable=False)
    merchant_net = Column(Numeric(15, 2), default=0, nullable=False)
    referral_bonus = Column(Numeric(15, 2), default=0, nullable=False)
    description = Column(Text)
    status = Column(Enum(TransactionStatus, name="transaction_status"), nullable=False, default=TransactionStatus.completed)
    payment_method = Column(Enum(PaymentMethod, name="payment_method"), nullable=False)
    source = Column(Enum(TransactionSource, name="transaction_source"), nullable=False, default=TransactionSource.manual)
    qr_code_id = Column(UUID(as_uuid=True), ForeignKey("qr_codes.id"))
    idempotency_key = Column(Text, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    client = relationship("User", foreign_keys=[user_id], backref="transactions")
    merchant = relationship("Merchant", backref="transactions")
    items = relationship("TransactionItem", back_populates="transaction", cascade="all, delete-orphan")


class TransactionItem(Base):
    __tablename__ = "transaction_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transaction_id = Column(UUID(as_uuid=True), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    item_type = Column(Enum(ItemType, name="item_type"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    transaction = relationship("Transaction", back_populates="items")
