"""Amount parsing and percentage helpers shared by the domain services."""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from fee_ledger.config import SETTINGS

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def parse_decimal(value: object) -> Decimal:
    """Parse a user or payload amount; blank and unparseable values become 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    s = str(value).strip()
    if not s:
        return ZERO
    for ch in [",", " ", "DH", "MAD"]:
        s = s.replace(ch, "")
    try:
        result = Decimal(s)
    except InvalidOperation:
        logger.debug("Unparseable amount %r treated as 0", value)
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def coerce_amount(value: object) -> Decimal:
    """Like :func:`parse_decimal` but clamps negatives to 0 for display."""
    result = parse_decimal(value)
    if result < ZERO:
        logger.debug("Negative amount %r coerced to 0", value)
        return ZERO
    return result


def percentage(part: Decimal, whole: Decimal, places: int = 0) -> Decimal:
    """``part / whole * 100`` rounded half-up; 0 when ``whole`` is not positive."""
    quantum = Decimal(1).scaleb(-places)
    if whole <= ZERO:
        return ZERO.quantize(quantum)
    ratio = SETTINGS.decimal_context.divide(part * HUNDRED, whole)
    return ratio.quantize(quantum, rounding=ROUND_HALF_UP)
