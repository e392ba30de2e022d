"""
Analytics events and the bus that delivers them.

Public API:
    - AnalyticsStateEvent, AnalyticsClearedEvent, BridgeModeChangedEvent
    - BaseEvent / ValidatedEvent / ControlEvent: envelope and payload contracts
    - EventBus, IEventBus, SubscriptionToken: synchronous publish/subscribe
"""

from tradestats.events.event_bus import EventBus, IEventBus, SubscriptionToken
from tradestats.events.events import (
    AnalyticsClearedEvent,
    AnalyticsStateEvent,
    BaseEvent,
    BridgeModeChangedEvent,
    ControlEvent,
    ValidatedEvent,
)

__all__ = [
    # Base classes
    "BaseEvent",
    "ValidatedEvent",
    "ControlEvent",
    # Analytics
    "AnalyticsStateEvent",
    "AnalyticsClearedEvent",
    "BridgeModeChangedEvent",
    # EventBus
    "IEventBus",
    "EventBus",
    "SubscriptionToken",
]
