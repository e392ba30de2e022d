"""Integer-safe monetary arithmetic.

All monetary summation in TradeStats goes through this library:

- to_units / from_units: float <-> integer units at a scale
- round_money / round_field: rounding to the precision of a field
- safe_sum / SafeAccumulator: drift-free summation
- migrate_trade / migrate_all_trades: idempotent re-rounding of trade fields
"""

from tradestats.libraries.money.units import (
    MAX_SAFE_UNITS,
    MONEY_FIELDS,
    SafeAccumulator,
    Scale,
    from_units,
    get_scale,
    is_safe_units,
    is_zero,
    migrate_all_trades,
    migrate_trade,
    money_equal,
    round_field,
    round_money,
    safe_sum,
    to_units,
)

__all__ = [
    "MAX_SAFE_UNITS",
    "MONEY_FIELDS",
    "SafeAccumulator",
    "Scale",
    "from_units",
    "get_scale",
    "is_safe_units",
    "is_zero",
    "migrate_all_trades",
    "migrate_trade",
    "money_equal",
    "round_field",
    "round_money",
    "safe_sum",
    "to_units",
]
