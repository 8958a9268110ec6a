"""
Fixed-point money helpers.

All monetary arithmetic goes through Decimal and is rounded half-up to
cents. Values arriving as strings, ints or floats are converted through
their string form so binary floating point never leaks into an amount.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")

Numeric = Union[Decimal, int, float, str, None]


def to_decimal(value: Numeric) -> Decimal:
    """Convert a stored or user-entered value to Decimal. Unset is 0."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a number: {value!r}") from e


def to_money(value: Numeric) -> Decimal:
    """Convert to Decimal rounded half-up to cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Numeric, percentage: Numeric) -> Decimal:
    """`amount * percentage / 100`, rounded to cents."""
    return to_money(to_decimal(amount) * to_decimal(percentage) / HUNDRED)


def ratio_percent(part: Numeric, whole: Numeric) -> Decimal:
    """`part / whole * 100` rounded to cents, or 0 when whole is not positive."""
    whole_value = to_decimal(whole)
    if whole_value <= 0:
        return ZERO
    return to_money(to_decimal(part) / whole_value * HUNDRED)


def money_sum(values: Iterable[Numeric]) -> Decimal:
    total = Decimal("0")
    for value in values:
        total += to_decimal(value)
    return to_money(total)
