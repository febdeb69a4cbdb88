# vale_cashback/api/routes/auth.py

from decimal import Decimal
from fastapi import APIRouter, Request, Depends, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session
from vale_cashback.db.get_db import get_db
from vale_cashback.core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_DOMAIN,
    IS_PRODUCTION,
    MAX_COOKIE_AGE,
    SESSION_COOKIE_NAME,
    SIGNUP_BONUS,
)
from vale_cashback.core.exceptions import AuthenticationError, StateConflictError, ValidationError
from vale_cashback.core.logger import app_logger
from vale_cashback.models.enums import ReferralStatus, UserStatus, UserType
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.referral import Referral
from vale_cashback.models.user import User
from vale_cashback.services import ledger
from vale_cashback.utils.auth import create_access_token, get_current_user, verify_password
from vale_cashback.utils.helpers import (
    generate_invitation_code,
    hash_password,
    isoformat,
    money_str,
    success_response,
    utcnow,
)
from vale_cashback.utils.validation_functions import (
    read_json_body,
    text_field,
    validate_email,
    validate_password_strength,
    validate_registration_type,
    validate_username,
)

router = APIRouter()


def serialize_user(user: User) -> dict:
    data = {
        "id": str(user.id),
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "phone": user.phone,
        "type": user.type.value,
        "status": user.status.value,
        "invitation_code": user.invitation_code,
        "created_at": isoformat(user.created_at),
    }
    if user.type == UserType.merchant and user.merchant_profile:
        data["merchant"] = {
            "id": str(user.merchant_profile.id),
            "store_name": user.merchant_profile.store_name,
            "commission_rate": money_str(user.merchant_profile.commission_rate),
            "approved": user.merchant_profile.approved,
        }
    return data


def _unique_invitation_code(db: Session, user_type: UserType) -> str:
    prefix = "LJ" if user_type == UserType.merchant else "CL"
    code = generate_invitation_code(prefix)
    while db.query(User).filter(User.invitation_code == code).first():
        code = generate_invitation_code(prefix)
    return code


def _set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=IS_PRODUCTION,
        domain=COOKIE_DOMAIN,
        max_age=MAX_COOKIE_AGE,
        samesite="lax"
    )


@router.post("/register")
async def register(request: Request, response: Response, db: Session = Depends(get_db)):
    body = await read_json_body(request)
    name = text_field(body, "name")
    email = text_field(body, "email").lower()
    password = text_field(body, "password", strip=False)
    user_type = text_field(body, "type") or UserType.client.value
    username = text_field(body, "username") or None
    phone = text_field(body, "phone") or None
    store_name = text_field(body, "store_name")

    if not all([name, email, password]):
        raise ValidationError("Missing required fields", details={"required": ["name", "email", "password"]})
    if not validate_email(email):
        raise ValidationError("Invalid email format")
    if not validate_password_strength(password):
        raise ValidationError("Password must have at least 8 characters, including letters and digits")
    if not validate_registration_type(user_type):
        raise ValidationError("Invalid account type")
    if username and not validate_username(username):
        raise ValidationError("Invalid username")

    user_type = UserType(user_type)
    if user_type == UserType.merchant and not store_name:
        raise ValidationError("store_name is required for merchants")

    if db.query(User).filter(User.email == email).first():
        raise StateConflictError("Email already registered")
    if username and db.query(User).filter(User.username == username).first():
        raise StateConflictError("Username already taken")
    if phone and db.query(User).filter(User.phone == phone).first():
        raise StateConflictError("Phone number already registered")

    # Unknown invitation codes are ignored rather than failing registration
    referrer = None
    referral_code = text_field(body, "referral_code")
    if referral_code:
        referrer = db.query(User).filter(User.invitation_code == referral_code).first()
        if not referrer:
            app_logger.info("Ignoring unknown referral code %s", referral_code)

    now = utcnow()
    try:
        user = User(
            name=name,
            username=username,
            email=email,
            phone=phone,
            hashed_password=hash_password(password),
            type=user_type,
            status=UserStatus.active,
            invitation_code=_unique_invitation_code(db, user_type),
            referred_by=referrer.id if referrer else None,
            created_at=now,
            updated_at=now
        )
        db.add(user)
        db.flush()

        ledger.ensure_balance(db, user.id)
        if user_type == UserType.client and SIGNUP_BONUS > 0:
            ledger.credit(db, user.id, SIGNUP_BONUS)

        if user_type == UserType.merchant:
            db.add(Merchant(
                user_id=user.id,
                store_name=store_name,
                category=text_field(body, "category") or "general",
                address=text_field(body, "address") or None,
                approved=False,
                created_at=now
            ))

        if referrer:
            db.add(Referral(
                referrer_id=referrer.id,
                referred_id=user.id,
                bonus=Decimal("0.00"),
                status=ReferralStatus.pending,
                created_at=now
            ))
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    app_logger.info("Registered %s %s (referred_by=%s)", user.type.value, user.id, user.referred_by)

    access_token = create_access_token({"user_id": str(user.id), "type": user.type.value})
    _set_session_cookie(response, access_token)
    response.status_code = 201

    return success_response(
        data={
            "user": serialize_user(user),
            "access_token": access_token,
            "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60
        },
        message="Registration successful"
    )


@router.post("/login")
async def login(request: Request, response: Response, db: Session = Depends(get_db)):
    body = await read_json_body(request)
    identifier = text_field(body, "identifier") or text_field(body, "email")
    password = text_field(body, "password", strip=False)

    if not identifier or not password:
        raise ValidationError("Missing login credentials")

    user = db.query(User).filter(
        or_(
            User.email == identifier.lower(),
            User.username == identifier
        )
    ).first()

    if not user or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Your account is not active. Please contact support.")

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    access_token = create_access_token({"user_id": str(user.id), "type": user.type.value})
    _set_session_cookie(response, access_token)

    return success_response(
        data={
            "user": serialize_user(user),
            "access_token": access_token,
            "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60
        },
        message="Login successful"
    )


@router.post("/logout")
def logout(response: Response, current_user: User = Depends(get_current_user)):
    response.delete_cookie(SESSION_COOKIE_NAME, domain=COOKIE_DOMAIN)
    return success_response(message="Logged out")


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return success_response(data=serialize_user(current_user))
