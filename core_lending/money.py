"""
Decimal Money Helpers

Conversion and rounding for monetary values. NEVER uses float for arithmetic:
floats are converted through their string form before any calculation.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any

from .exceptions import InvalidAmountError

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')


def to_decimal(value: Any) -> Decimal:
    """
    Convert a number or numeric string to Decimal.

    Raises:
        InvalidAmountError: value is None, a bool, not numeric, or not finite
    """
    if isinstance(value, Decimal):
        result = value
    elif value is None or isinstance(value, bool):
        raise InvalidAmountError(f"Expected a number, got {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(f"Expected a number, got {value!r}")

    if not result.is_finite():
        raise InvalidAmountError(f"Expected a finite number, got {value!r}")
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half up"""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def non_negative(amount: Decimal) -> Decimal:
    """Clamp to zero from below"""
    return amount if amount > ZERO else ZERO


def within_cent(a: Decimal, b: Decimal) -> bool:
    """True if two amounts agree to within one cent"""
    return abs(a - b) <= CENT
