"""Compute bridge: runs the analytics pipeline on a worker process or inline.

Public API:
    - IComputeBridge: Protocol defining the bridge interface
    - ComputeBridge: Worker-backed implementation with sync fallback
    - ComputeError: Transport/serialization failure
    - ComputeResponse: Outcome of one compute call
    - BridgeInit, BridgeMode, BridgeState: Lifecycle types
    - worker_main / handle_message: Worker process entry point
"""

from tradestats.services.compute.bridge import ComputeBridge
from tradestats.services.compute.interface import IComputeBridge
from tradestats.services.compute.models import BridgeInit, BridgeMode, BridgeState, ComputeError, ComputeResponse
from tradestats.services.compute.worker import handle_message, worker_main

__all__ = [
    "BridgeInit",
    "BridgeMode",
    "BridgeState",
    "ComputeBridge",
    "ComputeError",
    "ComputeResponse",
    "IComputeBridge",
    "handle_message",
    "worker_main",
]
