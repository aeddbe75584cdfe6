"""
Utility functions for the gradebook app.
Decimal coercion and the rounding rules shared by every calculation step.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

TWO_PLACES = Decimal('0.01')
WHOLE = Decimal('1')
ZERO = Decimal('0')


def to_decimal(value, default=ZERO):
    """
    Convert a raw score value to Decimal.

    Args:
        value: int, float, str, Decimal or None
        default: Value returned when ``value`` is None or blank

    Returns:
        Decimal

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Expected a number, got {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Expected a finite number, got {value!r}")
    return result


def round2(value):
    """Round to 2 decimal places, halves away from zero."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_whole(value):
    """Round to a whole number, halves away from zero."""
    return int(to_decimal(value).quantize(WHOLE, rounding=ROUND_HALF_UP))
