"""Integer-unit monetary arithmetic.

Monetary floats are converted to integer units (cents for fiat, satoshi-sized
units for crypto prices and quantities), accumulated as Python ints and only
converted back to float at the edge. Summing N values therefore never
accumulates binary-fraction error:

    >>> safe_sum([0.1, 0.2])
    0.3
    >>> safe_sum([0.3, 0.1, 0.2])
    0.6
"""

import math
import sys
from decimal import ROUND_HALF_EVEN, Decimal
from enum import IntEnum
from typing import Any, Iterable, Mapping

MONEY_FIELDS = ("pnl", "fees", "entry", "exit", "qty")
FIAT_ONLY_FIELDS = frozenset({"pnl", "fees"})

# Largest integer a float (and a JSON consumer) represents exactly.
MAX_SAFE_UNITS = 2**53 - 1


class Scale(IntEnum):
    """Units per whole currency unit."""

    FIAT = 100
    CRYPTO = 100_000_000


def get_scale(field: str, asset_class: str | None = None) -> int:
    """
    Scale for a trade field.

    P&L and fees are always fiat-denominated. Prices and quantities of crypto
    assets need 8 decimals; everything else uses the fiat scale.
    """
    if field in FIAT_ONLY_FIELDS:
        return Scale.FIAT
    if asset_class is not None and asset_class.lower() == "crypto":
        return Scale.CRYPTO
    return Scale.FIAT


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    if isinstance(value, Decimal) and not value.is_finite():
        return False
    return True


def to_units(value: Any, scale: int = Scale.FIAT) -> int:
    """
    Convert a monetary value to integer units.

    Rounds half-to-even at the unit boundary using the shortest decimal
    representation of the float, so 0.145 becomes 14 cents rather than
    whatever 0.145 * 100 happens to land on in binary. Every finite value
    converts exactly, however large.

    None, NaN, infinities and non-numeric values map to 0.

    Example:
        >>> to_units(123.45)
        12345
        >>> to_units(0.00012345, Scale.CRYPTO)
        12345
    """
    if not _is_number(value):
        return 0
    decimal_value = value if isinstance(value, Decimal) else Decimal(repr(value))
    return int((decimal_value * scale).to_integral_value(rounding=ROUND_HALF_EVEN))


def from_units(units: int, scale: int = Scale.FIAT) -> float:
    """
    Convert integer units back to a float.

    Beyond MAX_SAFE_UNITS the result is the nearest float; past the float
    range it saturates at the largest finite float of the same sign.
    """
    try:
        return units / scale
    except OverflowError:
        return math.copysign(sys.float_info.max, units)


def is_safe_units(units: int) -> bool:
    """True while from_units() represents the unit count exactly."""
    return -MAX_SAFE_UNITS <= units <= MAX_SAFE_UNITS


def round_money(value: Any, scale: int = Scale.FIAT) -> float:
    """Round a monetary value to the precision of its scale."""
    return from_units(to_units(value, scale), scale)


def round_field(value: Any, field: str, asset_class: str | None = None) -> float:
    """Round a trade field value using the scale appropriate for that field."""
    return round_money(value, get_scale(field, asset_class))


def safe_sum(values: Iterable[Any], scale: int = Scale.FIAT) -> float:
    """Sum monetary values through integer accumulation. Non-numeric entries are skipped."""
    total = 0
    for value in values:
        if _is_number(value):
            total += to_units(value, scale)
    return from_units(total, scale)


def money_equal(a: Any, b: Any, scale: int = Scale.FIAT) -> bool:
    """True when both values round to the same integer units."""
    return to_units(a, scale) == to_units(b, scale)


def is_zero(value: Any, scale: int = Scale.FIAT) -> bool:
    """True when the value rounds to zero units."""
    return to_units(value, scale) == 0


class SafeAccumulator:
    """
    Running integer-unit total.

    Example:
        >>> acc = SafeAccumulator()
        >>> acc.add(0.1).add(0.2).result
        0.3
    """

    __slots__ = ("_scale", "_units", "_count")

    def __init__(self, scale: int = Scale.FIAT) -> None:
        self._scale = scale
        self._units = 0
        self._count = 0

    def add(self, value: Any) -> "SafeAccumulator":
        self._units += to_units(value, self._scale)
        self._count += 1
        return self

    def subtract(self, value: Any) -> "SafeAccumulator":
        self._units -= to_units(value, self._scale)
        self._count += 1
        return self

    def add_units(self, units: int) -> "SafeAccumulator":
        """Add a value already expressed in integer units."""
        self._units += units
        self._count += 1
        return self

    @property
    def result(self) -> float:
        return from_units(self._units, self._scale)

    @property
    def raw_units(self) -> int:
        return self._units

    @property
    def exact(self) -> bool:
        """False once the running total is too large for result to be exact."""
        return is_safe_units(self._units)

    @property
    def count(self) -> int:
        return self._count

    @property
    def scale(self) -> int:
        return self._scale

    def reset(self) -> None:
        self._units = 0
        self._count = 0

    def __repr__(self) -> str:
        return f"SafeAccumulator(result={self.result}, count={self._count}, scale={self._scale})"


def _rounded_updates(values: Mapping[str, Any], asset_class: str | None) -> dict[str, float]:
    updates: dict[str, float] = {}
    for field in MONEY_FIELDS:
        current = values.get(field)
        if not _is_number(current):
            continue
        rounded = round_field(current, field, asset_class)
        if rounded != current:
            updates[field] = rounded
    return updates


def migrate_trade(trade: Any) -> Any:
    """
    Re-round a trade's monetary fields to their scale.

    Accepts a pydantic model or a mapping and never mutates it. When every
    field is already at its scale the same object is returned, which makes
    the migration idempotent: migrate_trade(migrate_trade(t)) == migrate_trade(t).
    """
    if isinstance(trade, Mapping):
        asset_class = trade.get("asset_class", trade.get("assetClass"))
        updates = _rounded_updates(trade, asset_class)
        return {**trade, **updates} if updates else trade

    if hasattr(trade, "model_copy"):
        values = {field: getattr(trade, field, None) for field in MONEY_FIELDS}
        updates = _rounded_updates(values, getattr(trade, "asset_class", None))
        return trade.model_copy(update=updates) if updates else trade

    return trade


def migrate_all_trades(trades: list[Any]) -> list[Any]:
    """
    Migrate every trade.

    Returns the input list itself when no trade needed re-rounding.
    """
    migrated = [migrate_trade(trade) for trade in trades]
    if all(new is old for new, old in zip(migrated, trades)):
        return trades
    return migrated
