"""Decimal utilities for claim amounts and dashboard ratios."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional, Union

from app.utils.logger import get_logger

logger = get_logger(__name__)

# Claim amounts are stored with 2 decimal places in a single currency
AMOUNT_PRECISION = Decimal("0.01")
RATE_PRECISION = Decimal("0.1")

Numeric = Union[str, int, float, Decimal]


def parse_amount(value: Optional[Numeric]) -> Optional[Decimal]:
    """
    Parse a monetary amount, rounded half-up to 2 decimal places.

    Returns None for missing or unparseable values.

    Example:
        >>> parse_amount("1500.455")
        Decimal('1500.46')
        >>> parse_amount(None) is None
        True
    """
    if value is None:
        return None

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        text = str(value).strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except (ValueError, InvalidOperation) as e:
            logger.warning("Failed to parse amount", value=value, error=str(e))
            return None
    else:
        logger.warning("Unsupported type for amount parsing", type=type(value).__name__)
        return None

    if not result.is_finite():
        return None
    return result.quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_UP)


def sum_amounts(values: Iterable[Optional[Decimal]]) -> Decimal:
    """Sum amounts, treating missing ones as zero."""
    total = Decimal("0.00")
    for value in values:
        if value is not None:
            total += value
    return total.quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_UP)


def percentage(part: Numeric, whole: Numeric) -> float:
    """
    Percentage of ``part`` in ``whole`` with one decimal, 0.0 when ``whole`` is zero.

    Example:
        >>> percentage(1, 3)
        33.3
    """
    whole_dec = Decimal(str(whole))
    if whole_dec == 0:
        return 0.0
    ratio = Decimal(str(part)) * 100 / whole_dec
    return float(ratio.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP))


def amount_to_float(value: Optional[Decimal]) -> Optional[float]:
    """Convert an amount for JSON payloads (lossy, display only)."""
    if value is None:
        return None
    return float(value)
