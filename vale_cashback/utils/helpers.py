# vale_cashback/utils/helpers.py
import hashlib
import random
import secrets
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def success_response(data=None, message="Operation successful", pagination=None, summary=None):
    response = {"success": True, "data": data, "message": message}
    if pagination is not None:
        response["pagination"] = pagination
    if summary is not None:
        response["summary"] = summary
    return response


def error_response(code, message, details=None):
    return {
        "success": False,
        "message": message,
        "error": {"code": code, "message": message, "details": details},
    }


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how every DateTime column is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_money(value) -> Decimal:
    """
    Quantize a value to currency cents (half-up).
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("Invalid amount")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ValueError("Invalid amount")
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """``rate`` is a percentage: percent_of(100, 5) == 5.00"""
    return (Decimal(amount) * Decimal(rate) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    return str(Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP))


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def generate_invitation_code(prefix: str = "CL", length: int = 6) -> str:
    """
    Generate an uppercase alphanumeric invitation code, excluding ambiguous characters.
    Example: CLAB9XQ2
    """
    chars = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    return prefix + "".join(random.choices(chars, k=length))


def generate_payment_code() -> str:
    return secrets.token_hex(16)


def isoformat(value):
    return value.isoformat() if value else None
