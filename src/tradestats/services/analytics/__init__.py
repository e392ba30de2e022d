"""Analytics orchestration: memoization, debounce and result publication.

Public API:
    - IAnalyticsOrchestrator: Protocol defining the orchestrator interface
    - AnalyticsOrchestrator: Debounced, latest-wins implementation
    - OrchestratorState: idle/pending/computing/error
    - get_orchestrator / shutdown_orchestrator: Process-wide instance
    - AnalyticsStore, AnalyticsState: Published result store
    - ResultCache: Bounded LRU of computed results
    - trade_fingerprint, settings_key: Change detection
"""

from tradestats.services.analytics.cache import ResultCache, cache_key
from tradestats.services.analytics.fingerprint import EMPTY_FINGERPRINT, settings_key, trade_fingerprint
from tradestats.services.analytics.interface import IAnalyticsOrchestrator
from tradestats.services.analytics.service import (
    AnalyticsOrchestrator,
    OrchestratorState,
    get_orchestrator,
    shutdown_orchestrator,
)
from tradestats.services.analytics.store import AnalyticsState, AnalyticsStore

__all__ = [
    "AnalyticsOrchestrator",
    "AnalyticsState",
    "AnalyticsStore",
    "EMPTY_FINGERPRINT",
    "IAnalyticsOrchestrator",
    "OrchestratorState",
    "ResultCache",
    "cache_key",
    "get_orchestrator",
    "settings_key",
    "shutdown_orchestrator",
    "trade_fingerprint",
]
