"""
Analytics result store.

Holds the current AnalyticsState and replaces it wholesale on every
transition. Each new state is published as an AnalyticsStateEvent, so
observers subscribe to the event bus instead of polling the store.

Transitions:
    set_computing()             computing=True, error cleared, result kept
    set_result(result, ms, m)   computing=False, result replaced, version+1
    set_error(message)          computing=False, error set, result kept
    clear()                     back to the initial state (version 0)
"""

from typing import Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict

from tradestats.events import AnalyticsClearedEvent, AnalyticsStateEvent, EventBus, IEventBus, SubscriptionToken
from tradestats.libraries.performance.models import AnalyticsResult
from tradestats.system import LoggerFactory

logger = LoggerFactory.get_logger()


class AnalyticsState(BaseModel):
    """Immutable store snapshot."""

    model_config = ConfigDict(frozen=True)

    result: Optional[AnalyticsResult] = None
    computing: bool = False
    error: Optional[str] = None
    last_compute_ms: float = 0.0
    mode: Literal["sync", "worker"] = "sync"
    version: int = 0

    @classmethod
    def from_event(cls, event: AnalyticsStateEvent) -> "AnalyticsState":
        return cls(
            result=event.result,
            computing=event.computing,
            error=event.error,
            last_compute_ms=event.last_compute_ms,
            mode=event.mode,
            version=event.version,
        )


class AnalyticsStore:
    """
    Publish/subscribe holder of the latest analytics state.

    Example:
        >>> store = AnalyticsStore()
        >>> token = store.subscribe(lambda event: print(event.version))
        >>> store.set_result(result, ms=12.5, mode="sync")
        >>> store.state.version
        1
        >>> token.unsubscribe()
    """

    def __init__(self, event_bus: Optional[IEventBus] = None):
        self._event_bus = event_bus if event_bus is not None else EventBus()
        self._state = AnalyticsState()

    @property
    def state(self) -> AnalyticsState:
        return self._state

    @property
    def event_bus(self) -> IEventBus:
        return self._event_bus

    def subscribe(self, handler: Callable[[AnalyticsStateEvent], None], priority: int = 0) -> SubscriptionToken:
        """Call handler with every published AnalyticsStateEvent."""
        return self._event_bus.subscribe(AnalyticsStateEvent, handler, priority)

    def set_computing(self) -> None:
        self._transition(self._state.model_copy(update={"computing": True, "error": None}))

    def set_result(self, result: Optional[AnalyticsResult], ms: float, mode: Literal["sync", "worker"]) -> None:
        self._transition(
            AnalyticsState(
                result=result,
                computing=False,
                error=None,
                last_compute_ms=max(0.0, ms),
                mode=mode,
                version=self._state.version + 1,
            )
        )

    def set_error(self, message: str) -> None:
        logger.warning("analytics_store.error", error=message)
        self._transition(self._state.model_copy(update={"computing": False, "error": message}))

    def clear(self) -> None:
        self._transition(AnalyticsState())
        self._event_bus.publish(AnalyticsClearedEvent())

    def _transition(self, new_state: AnalyticsState) -> None:
        self._state = new_state
        self._event_bus.publish(
            AnalyticsStateEvent(
                result=new_state.result,
                computing=new_state.computing,
                error=new_state.error,
                last_compute_ms=new_state.last_compute_ms,
                mode=new_state.mode,
                version=new_state.version,
            )
        )
