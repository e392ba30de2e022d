"""TradeStats services package.

Services are independently testable and communicate through Protocol
interfaces using dependency injection:

- compute: runs the analytics pipeline on a worker process or inline
- analytics: memoizes, debounces and publishes computations
"""

from tradestats.services.analytics import AnalyticsOrchestrator, IAnalyticsOrchestrator, get_orchestrator
from tradestats.services.compute import ComputeBridge, ComputeError, IComputeBridge

__all__: list[str] = [
    "AnalyticsOrchestrator",
    "ComputeBridge",
    "ComputeError",
    "IAnalyticsOrchestrator",
    "IComputeBridge",
    "get_orchestrator",
]
