"""
Analytics orchestrator.

One AnalyticsOrchestrator per process routes every analytics request through
a single ComputeBridge and publishes results through an AnalyticsStore.

compute_and_store() applies these guards in order:

    1. Empty trades     -> cancel the pending debounce, clear the store, forget
                           the last accepted fingerprint
    2. Unchanged input  -> fingerprint and settings key equal the last accepted
                           computation: no-op
    3. Debounce         -> remember the request as pending and restart the
                           timer; only the last request in a burst fires
    4. Re-check         -> after the window, compare against the last accepted
                           computation again
    5. Compute          -> publish computing, serve from the result cache or
                           call the bridge; publish the result unless it was
                           discarded or a newer request has fired since

State machine:
    idle --request--> pending --window elapsed--> computing --> idle | error
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence

from tradestats.events import AnalyticsStateEvent, SubscriptionToken
from tradestats.libraries.performance.models import AnalyticsSettings
from tradestats.services.analytics.cache import ResultCache, cache_key
from tradestats.services.analytics.fingerprint import settings_key, trade_fingerprint
from tradestats.services.analytics.store import AnalyticsStore
from tradestats.services.compute import ComputeBridge, ComputeError, IComputeBridge
from tradestats.system import LoggerFactory, get_system_config
from tradestats.system.config import AnalyticsConfig

logger = LoggerFactory.get_logger()


class OrchestratorState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMPUTING = "computing"
    ERROR = "error"


@dataclass
class _PendingRequest:
    trades: list[Any]
    settings: AnalyticsSettings | Mapping[str, Any] | None
    fingerprint: str
    settings_key: str
    force: bool = False


class AnalyticsOrchestrator:
    """
    Debounced, memoized, latest-wins analytics computation.

    Must be used from a single event loop. Callers awaiting
    compute_and_store() resolve when the debounced batch they joined has
    finished, whether or not their own request was the one computed.

    Example:
        >>> orchestrator = AnalyticsOrchestrator()
        >>> orchestrator.subscribe(lambda event: print(event.version, event.computing))
        >>> await orchestrator.compute_and_store(trades, {"mcRuns": 500})
        >>> await orchestrator.terminate()
    """

    def __init__(
        self,
        bridge: Optional[IComputeBridge] = None,
        store: Optional[AnalyticsStore] = None,
        config: Optional[AnalyticsConfig] = None,
    ):
        self._config = config or AnalyticsConfig()
        self._store = store or AnalyticsStore()
        self._bridge: IComputeBridge = bridge or ComputeBridge(event_bus=self._store.event_bus)
        self._cache = ResultCache(
            max_size=self._config.cache_max_size,
            ttl_seconds=self._config.cache_ttl_seconds,
        )

        self._state = OrchestratorState.IDLE
        self._terminated = False

        self._last_fingerprint: Optional[str] = None
        self._last_settings_key: Optional[str] = None

        self._pending: Optional[_PendingRequest] = None
        self._debounce_task: Optional[asyncio.Task[None]] = None
        self._batch: Optional[asyncio.Future[None]] = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._sequence = 0

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def store(self) -> AnalyticsStore:
        return self._store

    @property
    def bridge(self) -> IComputeBridge:
        return self._bridge

    @property
    def cache(self) -> ResultCache:
        return self._cache

    def subscribe(self, handler: Callable[[AnalyticsStateEvent], None]) -> SubscriptionToken:
        """Receive every AnalyticsStateEvent published by the store."""
        return self._store.subscribe(handler)

    async def compute_and_store(
        self,
        trades: Sequence[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    ) -> None:
        """
        Compute analytics for trades and publish the result to the store.

        Raises:
            ComputeError: If the orchestrator was terminated
        """
        await self._submit(trades, settings, force=False)

    async def force_recompute(
        self,
        trades: Sequence[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    ) -> None:
        """Like compute_and_store(), but skips the unchanged-input check and the result cache once."""
        await self._submit(trades, settings, force=True)

    def invalidate_cache(self) -> None:
        """Forget the last accepted computation and cached results; the next request computes."""
        self._last_fingerprint = None
        self._last_settings_key = None
        self._cache.invalidate()
        logger.debug("orchestrator.cache_invalidated")

    async def terminate(self) -> None:
        """Cancel pending work and shut the bridge down. Idempotent."""
        if self._terminated:
            return
        self._terminated = True

        self._cancel_debounce()
        self._last_fingerprint = None
        self._last_settings_key = None
        self._cache.invalidate()

        await self._bridge.terminate()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._state = OrchestratorState.IDLE
        logger.info("orchestrator.terminated")

    # ------------------------------------------------------------------ internals

    async def _submit(
        self,
        trades: Sequence[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None,
        force: bool,
    ) -> None:
        if self._terminated:
            raise ComputeError("Orchestrator terminated")

        trade_list = list(trades or [])
        if not trade_list:
            self._cancel_debounce()
            self._last_fingerprint = None
            self._last_settings_key = None
            self._state = OrchestratorState.IDLE
            self._store.clear()
            logger.debug("orchestrator.cleared")
            return

        fingerprint = trade_fingerprint(trade_list)
        key = settings_key(settings)
        if not force and self._is_accepted(fingerprint, key):
            logger.debug("orchestrator.unchanged", fingerprint=fingerprint)
            return

        sticky_force = force or (self._pending is not None and self._pending.force)
        self._pending = _PendingRequest(trade_list, settings, fingerprint, key, sticky_force)

        if self._debounce_task is not None:
            self._debounce_task.cancel()
        if self._batch is None or self._batch.done():
            self._batch = asyncio.get_running_loop().create_future()
        batch = self._batch

        self._state = OrchestratorState.PENDING
        task = asyncio.create_task(self._debounce_then_run(batch))
        self._debounce_task = task
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

        await asyncio.shield(batch)

    def _is_accepted(self, fingerprint: str, key: str) -> bool:
        return fingerprint == self._last_fingerprint and key == self._last_settings_key

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None
        self._pending = None
        batch, self._batch = self._batch, None
        if batch is not None and not batch.done():
            batch.set_result(None)

    async def _debounce_then_run(self, batch: "asyncio.Future[None]") -> None:
        await asyncio.sleep(self._config.debounce_ms / 1000)

        # Window elapsed: from here on this task can no longer be cancelled by new requests.
        request, self._pending = self._pending, None
        self._debounce_task = None
        if self._batch is batch:
            self._batch = None

        try:
            if request is not None:
                await self._run(request)
        finally:
            if not batch.done():
                batch.set_result(None)

    async def _run(self, request: _PendingRequest) -> None:
        if not request.force and self._is_accepted(request.fingerprint, request.settings_key):
            self._state = OrchestratorState.IDLE
            return

        self._sequence += 1
        sequence = self._sequence
        key = cache_key(request.fingerprint, request.settings_key)
        self._state = OrchestratorState.COMPUTING

        if not request.force:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("orchestrator.cache_hit", fingerprint=request.fingerprint)
                self._accept(request)
                self._store.set_result(cached.result, cached.ms, cached.mode)
                self._state = OrchestratorState.IDLE
                return

        self._store.set_computing()
        try:
            response = await self._bridge.compute(request.trades, request.settings)
        except ComputeError as e:
            if self._terminated:
                return
            logger.warning("orchestrator.compute_failed", error=str(e))
            if sequence == self._sequence:
                self._store.set_error(str(e))
                self._state = OrchestratorState.ERROR
            return

        if self._terminated or response.discarded or sequence != self._sequence:
            logger.debug("orchestrator.result_dropped", sequence=sequence, discarded=response.discarded)
            return

        self._accept(request)
        if response.data is not None:
            self._cache.put(key, response.data, response.ms, response.mode)
        self._store.set_result(response.data, response.ms, response.mode)
        self._state = OrchestratorState.IDLE
        logger.debug("orchestrator.computed", fingerprint=request.fingerprint, ms=round(response.ms, 2))

    def _accept(self, request: _PendingRequest) -> None:
        self._last_fingerprint = request.fingerprint
        self._last_settings_key = request.settings_key

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("orchestrator.task_failed", error=str(error), error_type=type(error).__name__)
            if not self._terminated:
                self._store.set_error(str(error) or type(error).__name__)
                self._state = OrchestratorState.ERROR


_orchestrator: Optional[AnalyticsOrchestrator] = None


def get_orchestrator() -> AnalyticsOrchestrator:
    """Get the process-wide orchestrator, creating it from the system config on first use."""
    global _orchestrator
    if _orchestrator is None:
        config = get_system_config()
        store = AnalyticsStore()
        bridge = ComputeBridge(config.compute, event_bus=store.event_bus)
        _orchestrator = AnalyticsOrchestrator(bridge=bridge, store=store, config=config.analytics)
    return _orchestrator


async def shutdown_orchestrator() -> None:
    """Terminate the process-wide orchestrator. Safe to call when none exists."""
    global _orchestrator
    orchestrator, _orchestrator = _orchestrator, None
    if orchestrator is not None:
        await orchestrator.terminate()
