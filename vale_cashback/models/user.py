# vale_cashback/models/user.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from vale_cashback.db.base import Base
from vale_cashback.models.enums import UserStatus, UserType


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    username = Column(Text, unique=True)
    email = Column(Text, unique=True, nullable=False)
    phone = Column(Text)
    hashed_password = Column(Text, nullable=False)
    type = Column(Enum(UserType, name="user_type"), nullable=False, default=UserType.client)
    status = Column(Enum(UserStatus, name="user_status"), nullable=False, default=UserStatus.active)
    invitation_code = Column(Text, unique=True)
    referred_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active
