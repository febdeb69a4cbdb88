"""
Shared fixtures: an in-memory SQLite database per test, factories for the
ledger's actors, and a TestClient wired to the same database.
"""
import os

# Must be set before any vale_cashback module reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_DIR"] = ""
os.environ["APP_ENV"] = "test"
os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from vale_cashback.db.base import Base
from vale_cashback.db.get_db import get_db
from vale_cashback.db.init_db import init_db
from vale_cashback.models.cashback import CashbackBalance
from vale_cashback.models.enums import QRCodeStatus, QRCodeType, ReferralStatus, UserStatus, UserType
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.qr_code import QRCode
from vale_cashback.models.referral import Referral
from vale_cashback.models.user import User
from vale_cashback.services.commission import CommissionRules, load_rules
from vale_cashback.utils.auth import create_access_token
from vale_cashback.utils.helpers import generate_invitation_code, generate_payment_code, hash_password, utcnow

PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def rules(db) -> CommissionRules:
    return load_rules(db)


def make_user(db, name="Ana Client", user_type=UserType.client, balance="0.00",
              status=UserStatus.active, referred_by=None, email=None):
    now = utcnow()
    user = User(
        name=name,
        email=email or f"{generate_invitation_code('u').lower()}@example.com",
        hashed_password=hash_password(PASSWORD),
        type=user_type,
        status=status,
        invitation_code=generate_invitation_code("LJ" if user_type == UserType.merchant else "CL"),
        referred_by=referred_by,
        created_at=now,
        updated_at=now
    )
    db.add(user)
    db.flush()
    db.add(CashbackBalance(
        user_id=user.id,
        balance=Decimal(balance),
        total_earned=Decimal(balance),
        total_spent=Decimal("0.00"),
        updated_at=now
    ))
    db.commit()
    db.refresh(user)
    return user


def make_merchant(db, store_name="Padaria Central", approved=True, balance="0.00"):
    user = make_user(db, name=f"{store_name} Owner", user_type=UserType.merchant, balance=balance)
    merchant = Merchant(user_id=user.id, store_name=store_name, category="food", approved=approved)
    db.add(merchant)
    db.commit()
    db.refresh(merchant)
    return merchant


def make_referral(db, referrer, referred):
    referral = Referral(
        referrer_id=referrer.id,
        referred_id=referred.id,
        bonus=Decimal("0.00"),
        status=ReferralStatus.pending
    )
    db.add(referral)
    db.commit()
    db.refresh(referral)
    return referral


def make_qr(db, merchant, amount="50.00", status=QRCodeStatus.active, expires_in=timedelta(minutes=15)):
    now = utcnow()
    qr = QRCode(
        user_id=merchant.user_id,
        code=generate_payment_code(),
        amount=Decimal(amount),
        description="Test payment",
        type=QRCodeType.payment,
        data={"type": "payment_request"},
        status=status,
        expires_at=now + expires_in,
        created_at=now
    )
    db.add(qr)
    db.commit()
    db.refresh(qr)
    return qr


def balance_of(db, user_id) -> Decimal:
    db.expire_all()
    row = db.query(CashbackBalance).filter(CashbackBalance.user_id == user_id).first()
    return Decimal(str(row.balance)) if row else Decimal("0.00")


def auth_headers(user) -> dict:
    token = create_access_token({"user_id": str(user.id), "type": user.type.value})
    return {"Authorization": f"Bearer {token}"}
