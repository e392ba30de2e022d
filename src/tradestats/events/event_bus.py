"""
In-process publish/subscribe for analytics observers.

The result store publishes every state transition here; views, CLIs and
tests subscribe instead of polling. Delivery is synchronous: publish()
returns after every handler has run, so observers see transitions in the
order they happened.

Handlers run highest priority first, then in subscription order. A handler
that raises is logged and skipped; the remaining handlers still run.
"""

import bisect
import itertools
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Type, TypeVar, Union, overload

from tradestats.events.events import BaseEvent
from tradestats.system import LoggerFactory

EventT = TypeVar("EventT", bound=BaseEvent)
Handler = Callable[[Any], None]
PublishHook = Callable[[BaseEvent], BaseEvent]
ErrorHook = Callable[[BaseEvent, Handler, Exception], None]

logger = LoggerFactory.get_logger()


class IEventBus(Protocol):
    """
    Publish/subscribe seam between the result store and its observers.

    Responsibilities:
    - Deliver each published event to the handlers registered for its type
    - Keep a bounded history for diagnostics

    Does NOT:
    - Cross threads or processes
    - Queue events for later delivery
    """

    def publish(self, event: BaseEvent) -> None: ...

    @overload
    def subscribe(self, event_type: str, handler: Callable[[BaseEvent], None], priority: int = 0) -> "SubscriptionToken": ...

    @overload
    def subscribe(self, event_type: Type[EventT], handler: Callable[[EventT], None], priority: int = 0) -> "SubscriptionToken": ...

    def subscribe(self, event_type: Union[str, Type[BaseEvent]], handler: Handler, priority: int = 0) -> "SubscriptionToken": ...

    def unsubscribe(self, event_type: str, handler: Handler) -> None: ...

    def get_history(
        self,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[BaseEvent]: ...

    def clear_history(self) -> None: ...


@dataclass(frozen=True)
class _Subscription:
    sort_key: tuple[int, int]
    handler: Handler = field(compare=False)


def event_type_name(event_type: Union[str, Type[BaseEvent]]) -> str:
    """Resolve an event class to the event_type string it publishes under."""
    if isinstance(event_type, str):
        return event_type
    declared = event_type.model_fields.get("event_type")
    name = declared.default if declared is not None else None
    if not isinstance(name, str):
        raise ValueError(f"Event class {event_type.__name__} missing event_type default")
    return name


def _handler_name(handler: Any) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class SubscriptionToken:
    """
    Handle returned by subscribe().

    Usable as a context manager: the handler is removed on exit.
    """

    def __init__(self, bus: IEventBus, event_type: str, handler: Handler):
        self.bus = bus
        self.event_type = event_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self.bus.unsubscribe(self.event_type, self.handler)

    def __enter__(self) -> "SubscriptionToken":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class EventBus:
    """
    Synchronous event bus. Not thread-safe: publish from the event loop thread.

    Example:
        >>> bus = EventBus(max_history=100)
        >>> with bus.subscribe(AnalyticsStateEvent, lambda e: print(e.version)):
        ...     bus.publish(AnalyticsStateEvent(version=1))
        1
        >>> [e.event_type for e in bus.get_history()]
        ['analytics_state']
    """

    def __init__(self, max_history: int = 1_000):
        """
        Args:
            max_history: Events kept for get_history(); 0 keeps everything
        """
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._order = itertools.count()
        self._history: deque[BaseEvent] = deque(maxlen=max_history or None)
        self._on_publish: Optional[PublishHook] = None
        self._on_error: Optional[ErrorHook] = None

    def publish(self, event: BaseEvent) -> None:
        if self._on_publish is not None:
            event = self._on_publish(event)
        self._history.append(event)

        # Snapshot: handlers may (un)subscribe while being called.
        subscriptions = tuple(self._subscriptions.get(event.event_type, ()))
        failures = 0
        for subscription in subscriptions:
            try:
                subscription.handler(event)
            except Exception as e:
                failures += 1
                logger.error(
                    "event_bus.handler_failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    handler=_handler_name(subscription.handler),
                    error=str(e),
                )
                if self._on_error is not None:
                    self._on_error(event, subscription.handler, e)

        if failures:
            logger.debug("event_bus.published", event_type=event.event_type, handlers=len(subscriptions), failures=failures)

    @overload
    def subscribe(self, event_type: str, handler: Callable[[BaseEvent], None], priority: int = 0) -> SubscriptionToken: ...

    @overload
    def subscribe(self, event_type: Type[EventT], handler: Callable[[EventT], None], priority: int = 0) -> SubscriptionToken: ...

    def subscribe(self, event_type: Union[str, Type[BaseEvent]], handler: Handler, priority: int = 0) -> SubscriptionToken:
        """Register handler for an event type (name or class). Higher priority runs first."""
        name = event_type_name(event_type)
        subscription = _Subscription(sort_key=(-priority, next(self._order)), handler=handler)
        bisect.insort(self._subscriptions.setdefault(name, []), subscription, key=lambda s: s.sort_key)
        logger.debug("event_bus.subscribed", event_type=name, handler=_handler_name(handler), priority=priority)
        return SubscriptionToken(self, name, handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        """Remove every registration of handler for event_type. Unknown handlers are ignored."""
        subscriptions = self._subscriptions.get(event_type)
        if not subscriptions:
            return
        remaining = [s for s in subscriptions if s.handler != handler]
        if len(remaining) != len(subscriptions):
            self._subscriptions[event_type] = remaining
            logger.debug("event_bus.unsubscribed", event_type=event_type, handler=_handler_name(handler))

    def get_history(
        self,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[BaseEvent]:
        """Recorded events, oldest first. ``limit`` keeps the most recent matches."""
        matches = [
            event
            for event in self._history
            if (event_type is None or event.event_type == event_type) and (since is None or event.occurred_at >= since)
        ]
        return matches[-limit:] if limit is not None else matches

    def clear_history(self) -> None:
        self._history.clear()

    def get_subscriber_count(self, event_type: str) -> int:
        return len(self._subscriptions.get(event_type, ()))

    def set_middleware(self, on_publish: Optional[PublishHook] = None, on_error: Optional[ErrorHook] = None) -> None:
        """
        Install hooks.

        Args:
            on_publish: Called before delivery; its return value is delivered instead
            on_error: Called with (event, handler, exception) after a handler fails
        """
        self._on_publish = on_publish
        self._on_error = on_error
