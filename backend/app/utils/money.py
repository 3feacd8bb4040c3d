from decimal import ROUND_HALF_EVEN, Decimal
from typing import List, Union

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    # floats go through str() so 3.75 stays 3.75 rather than its binary expansion
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(value: Number) -> Decimal:
    """Round to cents, half-even."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def percent_of(amount: Decimal, percentage: Number) -> Decimal:
    return to_money(amount * to_decimal(percentage) / HUNDRED)


def split_evenly(total: Number, parts: int) -> List[Decimal]:
    """
    Split `total` into `parts` cent amounts that differ by at most one cent and
    sum exactly to `total`. Leftover cents go to the first shares.
    """
    if parts <= 0:
        raise ValueError("parts must be positive")
    total_cents = int(to_money(total) / CENT)
    base, extra = divmod(total_cents, parts)
    return [
        (Decimal(base + (1 if i < extra else 0)) * CENT).quantize(CENT)
        for i in range(parts)
    ]
