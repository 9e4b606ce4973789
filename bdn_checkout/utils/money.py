"""Currency arithmetic helpers"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a numeric value to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion. Booleans and None are rejected even though bool is an int.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a number: {value!r}") from e


def round_currency(value: Decimal) -> Decimal:
    """Round to cents, half away from zero"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
