"""Service fees for consumer payments and platform fees for businesses"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from bdn_checkout.utils.money import ZERO, round_currency, to_decimal

# Consumer service fee: 10%, clamped to [$1.00, $14.99], waived with BDN+
CONSUMER_FEE_RATE = Decimal("0.10")
CONSUMER_FEE_MIN = Decimal("1.00")
CONSUMER_FEE_MAX = Decimal("14.99")

# Post-advertising fee charged to businesses/nonprofits on payments received
BUSINESS_FEE_RATE = Decimal("0.10")
BUSINESS_PLUS_FEE_RATE = Decimal("0.05")


@dataclass(frozen=True)
class ConsumerTotal:
    amount: Decimal
    service_fee: Decimal
    total: Decimal


@dataclass(frozen=True)
class BusinessNet:
    gross_amount: Decimal
    fee: Decimal
    net_amount: Decimal


def calculate_consumer_service_fee(amount: Any, has_plus: bool = False) -> Decimal:
    """
    Service fee added on top of a consumer payment.

    Thresholds rationale:
    - $1.00 floor keeps small payments worth processing
    - $14.99 cap keeps large payments from being penalized
    - BDN+ members pay no service fee
    """
    value = to_decimal(amount)
    if has_plus or value <= 0:
        return ZERO

    fee = value * CONSUMER_FEE_RATE
    fee = min(max(fee, CONSUMER_FEE_MIN), CONSUMER_FEE_MAX)
    return round_currency(fee)


def calculate_business_fee(amount: Any, has_plus_business: bool = False) -> Decimal:
    rate = BUSINESS_PLUS_FEE_RATE if has_plus_business else BUSINESS_FEE_RATE
    return round_currency(to_decimal(amount) * rate)


def consumer_total_with_fee(amount: Any, has_plus: bool = False) -> ConsumerTotal:
    value = to_decimal(amount)
    fee = calculate_consumer_service_fee(value, has_plus)
    return ConsumerTotal(amount=value, service_fee=fee, total=value + fee)


def business_net_amount(amount: Any, has_plus_business: bool = False) -> BusinessNet:
    value = to_decimal(amount)
    fee = calculate_business_fee(value, has_plus_business)
    return BusinessNet(gross_amount=value, fee=fee, net_amount=value - fee)
