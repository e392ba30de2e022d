"""
Unit tests for EventBus.

Tests publish/subscribe by string and by class, priority ordering, error
isolation, history management and middleware hooks.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from tradestats.events.event_bus import EventBus, SubscriptionToken
from tradestats.events.events import AnalyticsClearedEvent, AnalyticsStateEvent, BaseEvent, BridgeModeChangedEvent

# ============================================
# Fixtures
# ============================================


@pytest.fixture
def event_bus():
    """Create fresh EventBus for each test."""
    return EventBus(max_history=100)


@pytest.fixture
def state_event():
    return AnalyticsStateEvent(computing=True, version=3)


# ============================================
# Basic Publish/Subscribe Tests
# ============================================


class TestEventBusBasicSubscribe:
    """Test basic subscribe and publish functionality."""

    def test_publish_without_subscribers_succeeds(self, event_bus, state_event):
        event_bus.publish(state_event)

    def test_subscribe_by_string_and_publish(self, event_bus, state_event):
        events_received = []

        event_bus.subscribe("analytics_state", events_received.append)
        event_bus.publish(state_event)

        assert len(events_received) == 1
        assert events_received[0].event_id == state_event.event_id

    def test_subscribe_by_class_and_publish(self, event_bus, state_event):
        events_received = []

        event_bus.subscribe(AnalyticsStateEvent, events_received.append)
        event_bus.publish(state_event)

        assert events_received[0].version == 3

    def test_handlers_only_receive_their_event_type(self, event_bus, state_event):
        handler = Mock()

        event_bus.subscribe(BridgeModeChangedEvent, handler)
        event_bus.publish(state_event)

        handler.assert_not_called()

    def test_subscribe_by_class_without_event_type_default(self, event_bus):
        class Untyped(BaseEvent):
            event_type: str  # type: ignore[assignment]

        with pytest.raises(ValueError, match="missing event_type"):
            event_bus.subscribe(Untyped, Mock())


class TestEventBusPriority:
    def test_higher_priority_runs_first(self, event_bus, state_event):
        calls = []

        event_bus.subscribe("analytics_state", lambda e: calls.append("low"), priority=0)
        event_bus.subscribe("analytics_state", lambda e: calls.append("high"), priority=10)
        event_bus.subscribe("analytics_state", lambda e: calls.append("mid"), priority=5)
        event_bus.publish(state_event)

        assert calls == ["high", "mid", "low"]

    def test_equal_priority_keeps_subscription_order(self, event_bus, state_event):
        calls = []

        event_bus.subscribe("analytics_state", lambda e: calls.append(1))
        event_bus.subscribe("analytics_state", lambda e: calls.append(2))
        event_bus.publish(state_event)

        assert calls == [1, 2]


class TestEventBusErrorIsolation:
    def test_failing_handler_does_not_stop_others(self, event_bus, state_event):
        # Arrange
        def failing(event):
            raise RuntimeError("boom")

        received = []
        event_bus.subscribe("analytics_state", failing, priority=10)
        event_bus.subscribe("analytics_state", received.append)

        # Act
        event_bus.publish(state_event)

        # Assert
        assert len(received) == 1

    def test_on_error_middleware_called(self, event_bus, state_event):
        on_error = Mock()
        error = RuntimeError("boom")

        def failing(event):
            raise error

        event_bus.set_middleware(on_error=on_error)
        event_bus.subscribe("analytics_state", failing)
        event_bus.publish(state_event)

        on_error.assert_called_once_with(state_event, failing, error)


class TestEventBusUnsubscribe:
    def test_unsubscribe(self, event_bus, state_event):
        handler = Mock()
        event_bus.subscribe("analytics_state", handler)

        event_bus.unsubscribe("analytics_state", handler)
        event_bus.publish(state_event)

        handler.assert_not_called()
        assert event_bus.get_subscriber_count("analytics_state") == 0

    def test_unsubscribe_unknown_is_noop(self, event_bus):
        event_bus.unsubscribe("analytics_state", Mock())

    def test_token_context_manager(self, event_bus, state_event):
        handler = Mock()

        with event_bus.subscribe("analytics_state", handler) as token:
            assert isinstance(token, SubscriptionToken)
            event_bus.publish(state_event)
        event_bus.publish(state_event)

        assert handler.call_count == 1

    def test_token_unsubscribe_idempotent(self, event_bus):
        token = event_bus.subscribe("analytics_state", Mock())

        token.unsubscribe()
        token.unsubscribe()

        assert event_bus.get_subscriber_count("analytics_state") == 0


class TestEventBusHistory:
    def test_history_filters(self, event_bus, state_event):
        # Arrange
        cleared = AnalyticsClearedEvent()
        event_bus.publish(state_event)
        event_bus.publish(cleared)

        # Act / Assert
        assert len(event_bus.get_history()) == 2
        assert event_bus.get_history(event_type="analytics_cleared") == [cleared]
        assert event_bus.get_history(limit=1) == [cleared]

    def test_history_since(self, event_bus):
        old = AnalyticsClearedEvent(occurred_at=datetime.now(timezone.utc) - timedelta(hours=1))
        new = AnalyticsClearedEvent()
        event_bus.publish(old)
        event_bus.publish(new)

        since = datetime.now(timezone.utc) - timedelta(minutes=1)

        assert event_bus.get_history(since=since) == [new]

    def test_history_bounded(self):
        bus = EventBus(max_history=2)
        for _ in range(5):
            bus.publish(AnalyticsClearedEvent())

        assert len(bus.get_history()) == 2

    def test_clear_history(self, event_bus, state_event):
        event_bus.publish(state_event)
        event_bus.clear_history()
        assert event_bus.get_history() == []


class TestEventBusMiddleware:
    def test_on_publish_can_replace_event(self, event_bus, state_event):
        replacement = AnalyticsStateEvent(version=99)
        received = []

        event_bus.set_middleware(on_publish=lambda event: replacement)
        event_bus.subscribe("analytics_state", received.append)
        event_bus.publish(state_event)

        assert received == [replacement]
        assert event_bus.get_history() == [replacement]
