from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Parse a currency value into a 2-place Decimal"""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_stored_amount(value: Optional[Any]) -> Optional[float]:
    """Currency value as stored in Mongo documents (2-place float)"""
    if value is None:
        return None
    return float(to_decimal(value))
