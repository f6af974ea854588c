"""
Decimal helpers shared by every calculation step.

All amounts are Decimal. Floats are converted through str() so that 0.1
stays 0.1 instead of its binary expansion.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from estate_commissions.engine.errors import ConfigurationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Maximum drift allowed between a whole and the sum of its parts
TOLERANCE = Decimal("0.02")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Convert int / float / str / Decimal to Decimal. None becomes 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ConfigurationError(f"{field} must be numeric, got {value!r}", field, value)
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ConfigurationError(f"{field} must be numeric, got {value!r}", field, value)
    elif hasattr(value, "to_decimal"):
        # bson.Decimal128 coming back from MongoDB
        result = value.to_decimal()
    else:
        raise ConfigurationError(f"{field} must be numeric, got {value!r}", field, value)

    if not result.is_finite():
        raise ConfigurationError(f"{field} must be a finite number, got {value!r}", field, value)
    return result


def quantize_money(value: Decimal, field: str = "amount") -> Decimal:
    """
    Round to 2 decimal places (ROUND_HALF_UP).

    Amounts too large to carry cents within the decimal context precision
    raise ConfigurationError.
    """
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ConfigurationError(f"{field} is too large to represent in cents, got {value}", field, value)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def require_percent(value: Any, field: str, upper: Decimal = HUNDRED) -> Decimal:
    """Convert and range-check a percentage; out of range raises ConfigurationError."""
    percent = to_decimal(value, field)
    if percent < ZERO or percent > upper:
        raise ConfigurationError(
            f"{field} must be between 0 and {upper}, got {percent}", field, percent
        )
    return percent
