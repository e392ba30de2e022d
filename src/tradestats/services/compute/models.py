"""Compute bridge models and errors."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from tradestats.libraries.performance.models import AnalyticsResult

BridgeMode = Literal["sync", "worker"]


class ComputeError(Exception):
    """Transport or serialization failure while running a computation."""


class BridgeState(str, Enum):
    """Bridge lifecycle: uninitialized -> ready -> disposed."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPOSED = "disposed"


class BridgeInit(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: BridgeMode


class ComputeResponse(BaseModel):
    """
    Outcome of one Bridge.compute call.

    A discarded response belongs to a request superseded by a newer one and
    must never be surfaced to observers.
    """

    model_config = ConfigDict(frozen=True)

    data: AnalyticsResult | None = None
    ms: float = 0.0
    mode: BridgeMode = "sync"
    discarded: bool = False
