"""Compute bridge interface definition.

Defines the Protocol the orchestrator depends on, so that the worker-backed
ComputeBridge can be replaced by a test double.
"""

from typing import Any, Iterable, Mapping, Protocol

from tradestats.libraries.performance.models import AnalyticsSettings
from tradestats.services.compute.models import BridgeInit, BridgeMode, ComputeResponse

__all__ = ["IComputeBridge"]


class IComputeBridge(Protocol):
    """
    Executes the analytics pipeline off the caller's critical path.

    Responsibilities:
    - Provision a worker process, or fall back to inline execution
    - Run compute_analytics for one request at a time, latest wins
    - Report transport failures as ComputeError

    Does NOT:
    - Debounce or memoize requests
    - Publish results

    Examples:
        >>> bridge: IComputeBridge = ComputeBridge(ComputeConfig(use_worker=False))
        >>> await bridge.init()
        BridgeInit(mode='sync')
        >>> response = await bridge.compute(trades, {"mcRuns": 0})
        >>> response.discarded
        False
    """

    @property
    def mode(self) -> BridgeMode:
        """Current execution mode."""
        ...

    async def init(self) -> BridgeInit:
        """
        Provision the execution substrate. Idempotent.

        Returns:
            BridgeInit with the mode actually in use
        """
        ...

    async def compute(
        self,
        trades: Iterable[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    ) -> ComputeResponse:
        """
        Compute analytics for one request.

        Returns:
            ComputeResponse; discarded=True when superseded by a newer call

        Raises:
            ComputeError: On transport or serialization failure
        """
        ...

    async def terminate(self) -> None:
        """Release the execution substrate and reject the pending call. Idempotent."""
        ...
