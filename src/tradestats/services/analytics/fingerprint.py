"""
Cheap change detection for trade collections.

The fingerprint is ``"{count}|{first_id}|{last_id}|{pnl_cents_sum}"``, taken
over the collection in the order given. P&L is parsed like Trade.pnl, so
numeric strings count at their value. It is not a content hash: two
collections with the same count, the same ids at both ends and the same P&L
total in cents collide, and an edit that moves P&L between two trades without
changing the total goes unnoticed. Callers that need a recompute after such an
edit use AnalyticsOrchestrator.force_recompute().
"""

from typing import Any, Mapping, Sequence

from tradestats.libraries.money import Scale, to_units
from tradestats.libraries.performance.engine import coerce_settings
from tradestats.libraries.performance.models import AnalyticsSettings, parse_number

EMPTY_FINGERPRINT = "empty"


def _field(trade: Any, name: str) -> Any:
    if isinstance(trade, Mapping):
        return trade.get(name)
    return getattr(trade, name, None)


def trade_fingerprint(trades: Sequence[Any] | None) -> str:
    """
    Fingerprint a trade collection.

    Example:
        >>> trade_fingerprint([{"id": "a", "pnl": 10.5}, {"id": "b", "pnl": -3}])
        '2|a|b|750'
        >>> trade_fingerprint([{"id": "a", "pnl": "1,000.25"}])
        '1|a|a|100025'
        >>> trade_fingerprint([])
        'empty'
    """
    if not trades:
        return EMPTY_FINGERPRINT

    first = _field(trades[0], "id") or ""
    last = _field(trades[-1], "id") or ""
    pnl_units = sum(to_units(parse_number(_field(trade, "pnl")), Scale.FIAT) for trade in trades)
    return f"{len(trades)}|{first}|{last}|{pnl_units}"


def settings_key(settings: AnalyticsSettings | Mapping[str, Any] | None) -> str:
    """Comparable key for settings; equivalent spellings produce the same key."""
    return coerce_settings(settings).settings_key()
