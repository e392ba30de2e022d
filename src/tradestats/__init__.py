"""
TradeStats - Trading Performance Analytics

Public API for computing performance statistics over closed trades.
"""

from importlib.metadata import version

try:
    __version__ = version("tradestats")
except Exception:
    __version__ = "0.0.0.dev"  # Fallback for development


__all__ = [
    "__version__",
]
