"""
Money & rounding kernel.

Every money figure in the service is a :class:`decimal.Decimal`; binary
floats are converted through their shortest ``repr`` on the way in and never
used for arithmetic. Results are rounded with ``ROUND_HALF_UP`` to two
decimal places, and only at the return boundary of a public function:
intermediate sums, shares and ratios keep full precision.

    >>> round2(1.005)
    Decimal('1.01')
    >>> round2("1.004")
    Decimal('1.00')
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

MoneyLike = Decimal | int | float | str | None


def to_decimal(value: MoneyLike, default: Decimal = ZERO) -> Decimal:
    """
    Convert ``value`` to ``Decimal`` without binary-float artefacts.

    ``None`` becomes ``default``. Floats go through ``repr`` so ``1.005``
    stays ``Decimal("1.005")`` instead of ``Decimal("1.00499999...")``.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a money value")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal number: {value!r}") from exc


def round2(value: MoneyLike) -> Decimal:
    """Round to cents using round-half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_decimals(values: Iterable[MoneyLike]) -> Decimal:
    """Exact sum of ``values``; an empty iterable sums to ``Decimal("0")``."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


def sum_attr(items: Iterable[Any], attr: str) -> Decimal:
    """Exact sum of ``getattr(item, attr)`` over ``items`` (``None`` counts as 0)."""
    return sum_decimals(getattr(item, attr) for item in items)


def mean(values: Iterable[MoneyLike]) -> Decimal:
    """Unrounded arithmetic mean; ``0`` for no values."""
    items = [to_decimal(v) for v in values]
    if not items:
        return ZERO
    return sum_decimals(items) / Decimal(len(items))
