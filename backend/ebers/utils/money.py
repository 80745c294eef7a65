"""Fixed-point money helpers. All prices are ``Decimal`` with two places."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from ebers.core.config import MONEY_QUANTUM

Number = Union[Decimal, int, float, str]


def to_money(value: Optional[Number]) -> Optional[Decimal]:
    """Convert ``value`` to a two-place Decimal; floats go through ``str``."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def money_to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None
