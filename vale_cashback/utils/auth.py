# vale_cashback/utils/auth.py

import hmac
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from vale_cashback.db.get_db import get_db
from vale_cashback.models.enums import UserStatus, UserType
from vale_cashback.models.user import User
from vale_cashback.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY, SESSION_COOKIE_NAME
from vale_cashback.utils.helpers import hash_password

security = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Retrieve the current user either via bearer token or session cookie.
    Priority: Authorization header > session cookie
    """
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user_id = UUID(str(payload.get("user_id")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = db.query(User).filter(
        User.id == user_id,
        User.status == UserStatus.active
    ).first()

    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return user


def require_role(*roles: UserType):
    """
    Dependency factory restricting a route to the given user types.
    Usage: current_user: User = Depends(require_role(UserType.merchant))
    """
    allowed = frozenset(roles)

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.type not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Access restricted to: {', '.join(sorted(role.value for role in allowed))}"
            )
        return current_user

    return dependency


require_client = require_role(UserType.client)
require_merchant = require_role(UserType.merchant)
require_admin = require_role(UserType.admin)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare plain password with SHA256 hashed password"""
    return hmac.compare_digest(hash_password(plain_password), hashed_password)


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """
    Generate JWT token for user
    Expect data to contain: {"user_id": <uuid>, "type": <UserType>}
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    token = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return token
