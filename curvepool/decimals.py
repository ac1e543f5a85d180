"""
curvepool - Decimal helpers

Amounts are Decimals with 18 fractional digits (native precision), truncated
toward zero. Curve and index arithmetic runs in a wider context and is only
truncated when a value crosses back into native precision.
"""

import functools
from decimal import Decimal, Context, ROUND_DOWN, localcontext
from typing import Union

NATIVE_PLACES = 18
NATIVE_UNIT = Decimal(1).scaleb(-NATIVE_PLACES)

# Wide enough for 1e30 amounts with 36 fractional digits
WIDE_CONTEXT = Context(prec=96, rounding=ROUND_DOWN)

ZERO = Decimal(0)
ONE = Decimal(1)

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    """Convert int/str/Decimal input to Decimal. Floats are refused."""
    if isinstance(value, float):
        raise TypeError(f"Use str or Decimal for amounts, got float {value!r}")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def to_native(value: Number) -> Decimal:
    """Truncate to native precision."""
    return to_decimal(value).quantize(NATIVE_UNIT, rounding=ROUND_DOWN, context=WIDE_CONTEXT)


def wide_precision(func):
    """Run func with WIDE_CONTEXT as the active decimal context."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with localcontext(WIDE_CONTEXT):
            return func(*args, **kwargs)
    return wrapper


def fmt(value: Decimal, places: int = 6) -> str:
    """Short human form for logs."""
    return f"{value:.{places}f}"
