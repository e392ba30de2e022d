"""
Analytics events.

Every event carries the envelope described by ``envelope.v1.json``
(id, type, version, UTC timestamp, source, optional correlation ids) and
validates it on construction. Events with a payload contract
(ValidatedEvent) also validate their own fields against
``{SCHEMA_BASE}.v{event_version}.json``; lifecycle events (ControlEvent)
only carry the envelope.

Events are immutable. A handler that needs a different event builds a new one.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar, Literal, Optional
from uuid import uuid4

import jsonschema
from jsonschema import Draft202012Validator
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from tradestats.contracts import load_schema
from tradestats.libraries.performance.models import AnalyticsResult

ENVELOPE_SCHEMA = "envelope.v1.json"
ENVELOPE_FIELDS = (
    "event_id",
    "event_type",
    "event_version",
    "occurred_at",
    "correlation_id",
    "causation_id",
    "source_service",
)


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _check(validator: Draft202012Validator, instance: dict[str, Any], what: str) -> None:
    try:
        validator.validate(instance)
    except jsonschema.ValidationError as e:
        location = "/".join(str(part) for part in e.absolute_path) or "<root>"
        raise ValueError(f"{what}: {e.message} (at {location})") from None


class BaseEvent(BaseModel):
    """Envelope shared by all events."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str = "base"
    event_version: int = 1
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None
    causation_id: Optional[str] = None
    source_service: str = "unknown"

    @field_validator("occurred_at", mode="before")
    @classmethod
    def _as_utc(cls, value: Any) -> datetime:
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if not isinstance(value, datetime):
            raise ValueError(f"occurred_at must be a datetime or ISO string, got {type(value).__name__}")
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_serializer("occurred_at")
    def _serialize_occurred_at(self, value: datetime) -> str:
        return _rfc3339(value)

    def envelope(self) -> dict[str, Any]:
        """Envelope fields in wire form; unset optional ids are omitted."""
        values = {name: getattr(self, name) for name in ENVELOPE_FIELDS}
        values["occurred_at"] = _rfc3339(self.occurred_at)
        return {name: value for name, value in values.items() if value is not None}

    @model_validator(mode="after")
    def _check_envelope(self) -> "BaseEvent":
        _check(load_schema(ENVELOPE_SCHEMA), self.envelope(), f"{type(self).__name__} envelope validation failed")
        return self


class ValidatedEvent(BaseEvent):
    """
    Event with a payload contract.

    Subclasses set SCHEMA_BASE ("analytics/analytics_state") and an
    event_type equal to its last path segment. Fields listed in
    OPAQUE_FIELDS hold nested models and are checked only as objects.
    """

    SCHEMA_BASE: ClassVar[Optional[str]] = None
    OPAQUE_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def payload(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name in type(self).model_fields:
            if name in ENVELOPE_FIELDS:
                continue
            value = getattr(self, name)
            values[name] = ({} if value is not None else None) if name in self.OPAQUE_FIELDS else value
        return values

    @model_validator(mode="after")
    def _check_payload(self) -> "ValidatedEvent":
        cls_name = type(self).__name__
        if self.SCHEMA_BASE is None:
            raise ValueError(f"{cls_name} must specify SCHEMA_BASE")

        contract = self.SCHEMA_BASE.rsplit("/", 1)[-1]
        if self.event_type != contract:
            raise ValueError(f"{cls_name}: event_type '{self.event_type}' must equal contract name '{contract}'")

        schema_name = f"{self.SCHEMA_BASE}.v{self.event_version}.json"
        try:
            validator = load_schema(schema_name)
        except FileNotFoundError as e:
            raise ValueError(f"{cls_name}: {e}") from e
        _check(validator, self.payload(), f"{cls_name} payload validation failed against {schema_name}")
        return self


class ControlEvent(BaseEvent):
    """Lifecycle event without a payload contract."""


class AnalyticsStateEvent(ValidatedEvent):
    """
    Result store transition.

    Carries the complete new state, so subscribers never read the store back.
    """

    SCHEMA_BASE: ClassVar[Optional[str]] = "analytics/analytics_state"
    OPAQUE_FIELDS: ClassVar[frozenset[str]] = frozenset({"result"})

    event_type: str = "analytics_state"
    source_service: str = "analytics_store"

    result: Optional[AnalyticsResult] = None
    computing: bool = False
    error: Optional[str] = None
    last_compute_ms: float = 0.0
    mode: Literal["sync", "worker"] = "sync"
    version: int = 0


class AnalyticsClearedEvent(ControlEvent):
    """Result store reset because there are no trades."""

    event_type: str = "analytics_cleared"
    source_service: str = "analytics_store"


class BridgeModeChangedEvent(ControlEvent):
    """Compute bridge selected or lost its worker."""

    event_type: str = "bridge_mode_changed"
    source_service: str = "compute_bridge"
    mode: Literal["sync", "worker"] = "sync"
    reason: str = ""
