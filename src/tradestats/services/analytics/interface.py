"""Analytics orchestrator interface definition."""

from typing import Any, Callable, Mapping, Protocol, Sequence

from tradestats.events import AnalyticsStateEvent, SubscriptionToken
from tradestats.libraries.performance.models import AnalyticsSettings

__all__ = ["IAnalyticsOrchestrator"]


class IAnalyticsOrchestrator(Protocol):
    """
    Single entry point for analytics requests.

    Responsibilities:
    - Skip requests whose trades and settings match the last computation
    - Debounce bursts of requests so only the latest is computed
    - Publish computing/result/error transitions to subscribers

    Examples:
        >>> orchestrator: IAnalyticsOrchestrator = get_orchestrator()
        >>> token = orchestrator.subscribe(on_state)
        >>> await orchestrator.compute_and_store(trades, {"mcRuns": 500})
    """

    async def compute_and_store(
        self,
        trades: Sequence[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    ) -> None:
        """Compute and publish analytics; empty trades clear the store."""
        ...

    async def force_recompute(
        self,
        trades: Sequence[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    ) -> None:
        """Compute even if trades and settings are unchanged."""
        ...

    def invalidate_cache(self) -> None:
        """Forget the last computation without computing."""
        ...

    async def terminate(self) -> None:
        """Cancel pending work and release the bridge."""
        ...

    def subscribe(self, handler: Callable[[AnalyticsStateEvent], None]) -> SubscriptionToken:
        """Receive every published store state."""
        ...
