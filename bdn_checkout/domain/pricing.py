"""Tiered bulk-discount pricing for BLKD purchases"""

from decimal import Decimal
from typing import Any, Iterable, Sequence, Tuple

from bdn_checkout.domain.exceptions import InvalidQuantity, UnknownTier
from bdn_checkout.domain.models import PricingTier
from bdn_checkout.utils.money import ZERO, round_currency, to_decimal

# (minimum quantity, discount percent), ascending. Base rate: 1 BLKD = $1
BLKD_DISCOUNT_SCHEDULE: Tuple[Tuple[int, int], ...] = (
    (100, 5),
    (250, 8),
    (500, 9),
    (1000, 11),
    (2500, 13),
    (5000, 15),
)


def _price(quantity: Decimal, discount_percent: Decimal, base_rate: Decimal, tier_id: str, is_featured: bool = False) -> PricingTier:
    unit_price = round_currency(quantity * base_rate)
    savings = round_currency(unit_price * discount_percent / 100)
    return PricingTier(
        tier_id=tier_id,
        quantity=quantity,
        unit_price=unit_price,
        discount_percent=discount_percent,
        savings=savings,
        final_price=unit_price - savings,
        is_featured=is_featured,
        base_rate=base_rate,
    )


def build_tier_catalog(
    schedule: Iterable[Tuple[Any, Any]],
    base_rate: Any = 1,
    featured: Iterable[Any] = (),
) -> Tuple[PricingTier, ...]:
    """
    Build an immutable pricing catalog from (quantity, discount_percent) pairs.

    Raises:
        ValueError: If thresholds are not strictly ascending, discounts
            decrease, or a discount falls outside 0-100
    """
    rate = to_decimal(base_rate)
    featured_quantities = {to_decimal(q) for q in featured}

    tiers = []
    for raw_quantity, raw_discount in schedule:
        quantity = to_decimal(raw_quantity)
        discount = to_decimal(raw_discount)
        if quantity <= 0 or not 0 <= discount <= 100:
            raise ValueError(f"Invalid tier ({raw_quantity}, {raw_discount})")
        if tiers and quantity <= tiers[-1].quantity:
            raise ValueError("Tier thresholds must be strictly ascending")
        if tiers and discount < tiers[-1].discount_percent:
            raise ValueError("Tier discounts must not decrease with quantity")
        tiers.append(_price(quantity, discount, rate, f"blkd-{quantity}", quantity in featured_quantities))

    return tuple(tiers)


BLKD_PURCHASE_TIERS = build_tier_catalog(BLKD_DISCOUNT_SCHEDULE, featured=[1000])


def parse_quantity(requested_quantity: Any) -> Decimal:
    try:
        quantity = to_decimal(requested_quantity)
    except ValueError as e:
        raise InvalidQuantity(str(e)) from e
    if not quantity.is_finite():
        raise InvalidQuantity(f"Quantity must be finite: {requested_quantity!r}")
    if quantity < 0:
        raise InvalidQuantity(f"Quantity must not be negative: {requested_quantity!r}")
    return quantity


def resolve_tier(
    requested_quantity: Any,
    catalog: Sequence[PricingTier] = BLKD_PURCHASE_TIERS,
    base_rate: Any = None,
) -> PricingTier:
    """
    Price an arbitrary quantity against the catalog's discount schedule.

    The discount is that of the highest threshold not exceeding the
    quantity (step function). Below the smallest threshold no discount
    applies. Quantities are priced at the catalog's base rate unless
    `base_rate` overrides it.

    Example:
        1000 BLKD → 11% → savings $110.00, final price $890.00
        1200 BLKD → 11% → savings $132.00, final price $1068.00

    Raises:
        InvalidQuantity: On negative, non-finite or non-numeric input
    """
    quantity = parse_quantity(requested_quantity)

    discount = ZERO
    tier_id = "custom"
    is_featured = False
    for tier in catalog:
        if tier.quantity > quantity:
            break
        discount = tier.discount_percent
        if tier.quantity == quantity:
            tier_id, is_featured = tier.tier_id, tier.is_featured

    if base_rate is None:
        base_rate = catalog[0].base_rate if catalog else 1
    return _price(quantity, discount, to_decimal(base_rate), tier_id, is_featured)


def select_preset_tier(tier_id: str, catalog: Sequence[PricingTier] = BLKD_PURCHASE_TIERS) -> PricingTier:
    """Exact catalog lookup; raises UnknownTier on a miss"""
    for tier in catalog:
        if tier.tier_id == tier_id:
            return tier
    raise UnknownTier(tier_id)


def clamp_quantity(raw: Any) -> Decimal:
    """Recover from malformed quantity input by falling back to zero"""
    try:
        return parse_quantity(raw)
    except InvalidQuantity:
        return ZERO
