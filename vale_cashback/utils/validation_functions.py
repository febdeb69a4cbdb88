# vale_cashback/utils/validation_functions.py
import re
from decimal import Decimal

from vale_cashback.core.exceptions import ValidationError
from vale_cashback.models.enums import PaymentMethod, UserType
from vale_cashback.utils.helpers import to_money


async def read_json_body(request) -> dict:
    body = await request.json()
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def text_field(body: dict, field: str, strip: bool = True) -> str:
    """String value of a body field, "" when absent or null."""
    value = body.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field}")
    return value.strip() if strip else value


def validate_email(email: str) -> bool:
    pattern = r'^[\w\.\+-]+@[\w\.-]+\.\w+$'
    return re.match(pattern, email) is not None


def validate_password_strength(password: str) -> bool:
    """
    Password rules:
    - At least 8 characters
    - At least one letter
    - At least one digit
    """
    if not isinstance(password, str):
        return False
    if len(password) < 8:
        return False
    if not re.search(r'[A-Za-z]', password):
        return False
    if not re.search(r'\d', password):
        return False
    return True


def validate_username(username: str) -> bool:
    """
    Valid usernames can only contain letters, numbers, dots and underscores.
    Must be between 3 and 30 characters.
    """
    if not 3 <= len(username) <= 30:
        return False
    return re.fullmatch(r'^[A-Za-z0-9_\.]+$', username) is not None


def validate_registration_type(user_type: str) -> bool:
    """Admins are never self-registered."""
    return user_type in (UserType.client.value, UserType.merchant.value)


def parse_amount(value, field: str = "amount") -> Decimal:
    """Parse a strictly positive money amount or raise ValidationError."""
    try:
        amount = to_money(value)
    except ValueError:
        raise ValidationError(f"Invalid {field}")
    if amount <= 0:
        raise ValidationError(f"{field.capitalize()} must be greater than zero")
    return amount


def parse_rate(value, field: str) -> Decimal:
    """Percentages between 0 and 100 inclusive."""
    try:
        rate = to_money(value)
    except ValueError:
        raise ValidationError(f"Invalid {field}")
    if rate < 0 or rate > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return rate


def parse_payment_method(value, default: PaymentMethod = PaymentMethod.cash) -> PaymentMethod:
    if value in (None, ""):
        return default
    # The payment screen historically sent "cashback" for balance payments
    if value == "cashback":
        return PaymentMethod.wallet
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(
            "Invalid payment method",
            details={"allowed": [method.value for method in PaymentMethod]}
        )
