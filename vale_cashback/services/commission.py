# vale_cashback/services/commission.py
"""
Commission rules: the singleton ``commission_settings`` row, loaded once per
request into an immutable value that the engines receive as a parameter.
"""
from decimal import Decimal

from fastapi import Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from vale_cashback.core import config
from vale_cashback.core.exceptions import ValidationError
from vale_cashback.core.logger import app_logger
from vale_cashback.db.get_db import get_db
from vale_cashback.models.commission_settings import CommissionSettings
from vale_cashback.models.user import User
from vale_cashback.utils.helpers import money_str, to_money, utcnow
from vale_cashback.utils.validation_functions import parse_rate

RATE_FIELDS = ("platform_fee", "client_cashback", "referral_bonus", "max_cashback_bonus", "withdrawal_fee")
AMOUNT_FIELDS = ("min_withdrawal", "referral_min_amount")


class CommissionRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform_fee: Decimal
    client_cashback: Decimal
    referral_bonus: Decimal
    max_cashback_bonus: Decimal
    min_withdrawal: Decimal
    withdrawal_fee: Decimal
    referral_min_amount: Decimal = Decimal("0.00")

    @classmethod
    def from_settings(cls, settings: CommissionSettings) -> "CommissionRules":
        return cls(**{
            field: Decimal(str(getattr(settings, field)))
            for field in RATE_FIELDS + AMOUNT_FIELDS
        })

    def to_dict(self) -> dict:
        return {field: money_str(getattr(self, field)) for field in RATE_FIELDS + AMOUNT_FIELDS}


def get_or_create_settings(db: Session) -> CommissionSettings:
    settings = db.query(CommissionSettings).order_by(CommissionSettings.updated_at.desc()).first()
    if settings:
        return settings

    settings = CommissionSettings(
        platform_fee=config.DEFAULT_PLATFORM_FEE,
        client_cashback=config.DEFAULT_CLIENT_CASHBACK,
        referral_bonus=config.DEFAULT_REFERRAL_BONUS,
        max_cashback_bonus=config.DEFAULT_MAX_CASHBACK,
        min_withdrawal=config.DEFAULT_MIN_WITHDRAWAL,
        withdrawal_fee=config.DEFAULT_WITHDRAWAL_FEE,
        referral_min_amount=config.DEFAULT_REFERRAL_MIN_AMOUNT,
        updated_at=utcnow()
    )
    db.add(settings)
    db.commit()
    db.refresh(settings)
    app_logger.info("Seeded commission settings with defaults")
    return settings


def load_rules(db: Session) -> CommissionRules:
    return CommissionRules.from_settings(get_or_create_settings(db))


def get_commission_rules(db: Session = Depends(get_db)) -> CommissionRules:
    """Request-scoped dependency: one settings read per request."""
    return load_rules(db)


def update_settings(db: Session, body: dict, admin: User) -> CommissionRules:
    settings = get_or_create_settings(db)
    changes = {}

    for field in RATE_FIELDS:
        if body.get(field) is not None:
            changes[field] = parse_rate(body[field], field)

    for field in AMOUNT_FIELDS:
        if body.get(field) is not None:
            try:
                value = to_money(body[field])
            except ValueError:
                raise ValidationError(f"Invalid {field}")
            if value < 0:
                raise ValidationError(f"{field} cannot be negative")
            changes[field] = value

    if not changes:
        raise ValidationError("No commission fields supplied", details={"fields": list(RATE_FIELDS + AMOUNT_FIELDS)})

    cashback = changes.get("client_cashback", Decimal(str(settings.client_cashback)))
    max_cashback = changes.get("max_cashback_bonus", Decimal(str(settings.max_cashback_bonus)))
    if cashback > max_cashback:
        raise ValidationError("client_cashback cannot exceed max_cashback_bonus")

    for field, value in changes.items():
        setattr(settings, field, value)
    settings.updated_at = utcnow()
    settings.updated_by = admin.id

    db.commit()
    db.refresh(settings)
    app_logger.info(
        "Commission settings updated by %s: %s",
        admin.id, {field: str(value) for field, value in changes.items()}
    )
    return CommissionRules.from_settings(settings)
