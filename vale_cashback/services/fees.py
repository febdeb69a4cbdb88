# vale_cashback/services/fees.py
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from vale_cashback.services.commission import CommissionRules
from vale_cashback.utils.helpers import percent_of


class FeeBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    platform_fee: Decimal
    client_cashback: Decimal
    referral_bonus: Decimal
    merchant_net: Decimal


def calculate_split(amount: Decimal, rules: CommissionRules, with_referral: bool = False) -> FeeBreakdown:
    """
    Split a sale between the platform, the client's cashback and the referrer.

    Each leg is rounded to cents on its own; the merchant takes the remainder,
    so ``platform_fee + merchant_net == amount`` holds exactly. Cashback is
    capped at ``max_cashback_bonus`` percent of the sale.
    """
    platform_fee = percent_of(amount, rules.platform_fee)
    client_cashback = min(
        percent_of(amount, rules.client_cashback),
        percent_of(amount, rules.max_cashback_bonus)
    )
    referral_bonus = percent_of(amount, rules.referral_bonus) if with_referral else Decimal("0.00")

    return FeeBreakdown(
        amount=amount,
        platform_fee=platform_fee,
        client_cashback=client_cashback,
        referral_bonus=referral_bonus,
        merchant_net=amount - platform_fee,
    )
