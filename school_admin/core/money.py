from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

CENT = Decimal("0.01")


def to_money(val: Any) -> Decimal:
    """Decimal rounded to cents. None counts as zero; floats go through str() to avoid binary noise."""
    if val is None:
        return Decimal("0.00")
    if not isinstance(val, Decimal):
        val = Decimal(str(val))
    return val.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Any]) -> Decimal:
    total = Decimal("0.00")
    for val in values:
        total += to_money(val)
    return total
