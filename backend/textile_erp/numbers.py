from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional


MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")

# Balances within one cent are treated as settled (absorbs rounding drift
# from repeated partial payments).
PAYMENT_EPSILON = Decimal("0.01")


def dec(x) -> Decimal:
    """Coerce ints, floats, strings and None to Decimal without float noise."""
    if isinstance(x, Decimal):
        value = x
    else:
        try:
            value = Decimal(str(x if x is not None else 0))
        except InvalidOperation:
            raise ValueError(f"not a number: {x!r}")
    if not value.is_finite():
        raise ValueError(f"not a finite number: {x!r}")
    return value


def money(x) -> Decimal:
    return dec(x).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def quantity(x) -> Decimal:
    return dec(x).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def dec_str(x) -> Optional[str]:
    """JSON-safe rendering of a stored Numeric value."""
    if x is None:
        return None
    return str(dec(x))


def _exact(x, places: Decimal) -> Decimal:
    value = dec(x)
    quantized = value.quantize(places, rounding=ROUND_HALF_UP)
    if quantized != value:
        raise ValueError(f"{x!r} has more than {-places.as_tuple().exponent} decimal places")
    return quantized


def exact_money(x) -> Decimal:
    """Caller-supplied amount; rejected rather than rounded past 0.01."""
    return _exact(x, MONEY_PLACES)


def exact_quantity(x) -> Decimal:
    """Caller-supplied quantity; rejected rather than rounded past 0.001."""
    return _exact(x, QUANTITY_PLACES)
