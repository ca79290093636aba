"""
Money helpers.

Shop prices are VND, which has no minor unit, but marketplace payloads
arrive as floats, strings or Shopee's scaled integers. Everything is
converted to Decimal on the way in and only turned back into a float
when a JSON response is built.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal]

ZERO = Decimal("0")
CENTS = Decimal("0.01")
WHOLE = Decimal("1")

# Shopee v2 reports amounts in 1/100000 of the currency unit
SHOPEE_AMOUNT_SCALE = Decimal("100000")


def to_decimal(value: Union[Number, None]) -> Decimal:
    """Decimal for value; None and unparseable input become 0."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        return Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO


def round_money(value: Number, to_int: bool = False) -> Decimal:
    """Round half-up to cents, or to whole units when to_int is set."""
    return to_decimal(value).quantize(WHOLE if to_int else CENTS, rounding=ROUND_HALF_UP)


def to_float(value: Number) -> float:
    return float(to_decimal(value))


def percent(value: Number, percent_value: Number) -> Decimal:
    return to_decimal(value) * to_decimal(percent_value) / 100


def from_shopee_amount(value: Union[Number, None]) -> Decimal:
    """Convert a Shopee API amount to currency units."""
    return to_decimal(value) / SHOPEE_AMOUNT_SCALE
