"""
Compute bridge: runs the analytics pipeline in a worker process or inline.

State machine:
    uninitialized --init()--> ready(worker) | ready(sync) --terminate()--> disposed

On init() the bridge spawns a worker process and confirms it with a
ping/pong round-trip. If the process cannot be started or does not answer
in time, the bridge falls back to sync mode and runs the pipeline inline.

Latest wins: every compute() call gets a new request id. A call still
waiting on the worker when a newer one arrives is resolved immediately with
``discarded=True``; the worker's eventual reply for it no longer matches the
pending id and is dropped.
"""

import asyncio
import multiprocessing
import pickle
import threading
import time
from dataclasses import dataclass
from multiprocessing.connection import Connection
from typing import Any, Iterable, Mapping, Optional

from tradestats.events import BridgeModeChangedEvent, IEventBus
from tradestats.libraries.performance import AnalyticsResult, coerce_settings, compute_analytics
from tradestats.libraries.performance.models import AnalyticsSettings
from tradestats.services.compute.models import (
    BridgeInit,
    BridgeMode,
    BridgeState,
    ComputeError,
    ComputeResponse,
)
from tradestats.services.compute.protocol import (
    ProtocolError,
    compute_request,
    ping_message,
    shutdown_message,
    validate_response,
)
from tradestats.services.compute.worker import worker_main
from tradestats.system import LoggerFactory
from tradestats.system.config import ComputeConfig

logger = LoggerFactory.get_logger()


@dataclass
class _PendingRequest:
    request_id: int
    future: "asyncio.Future[ComputeResponse]"


class ComputeBridge:
    """
    Executes compute_analytics on a worker process, falling back to inline.

    Must be used from a single event loop. The worker's replies are read on
    a background thread and handed to the loop with call_soon_threadsafe, so
    all bridge state is only ever touched from the loop thread.

    Example:
        >>> bridge = ComputeBridge()
        >>> init = await bridge.init()
        >>> response = await bridge.compute(trades, {"mcRuns": 0})
        >>> if not response.discarded:
        ...     print(response.data.win_rate)
        >>> await bridge.terminate()
    """

    def __init__(self, config: ComputeConfig | None = None, event_bus: IEventBus | None = None):
        self._config = config or ComputeConfig()
        self._event_bus = event_bus
        self._state = BridgeState.UNINITIALIZED
        self._mode: BridgeMode = "sync"
        self._init_lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._process: Optional[multiprocessing.process.BaseProcess] = None
        self._conn: Optional[Connection] = None
        self._reader: Optional[threading.Thread] = None
        self._pong: Optional["asyncio.Future[bool]"] = None

        self._request_id = 0
        self._pending: Optional[_PendingRequest] = None

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def mode(self) -> BridgeMode:
        return self._mode

    async def init(self) -> BridgeInit:
        """
        Provision the execution substrate. Idempotent.

        Raises:
            ComputeError: If the bridge was already terminated
        """
        async with self._init_lock:
            if self._state is BridgeState.DISPOSED:
                raise ComputeError("Bridge terminated")
            if self._state is BridgeState.READY:
                return BridgeInit(mode=self._mode)

            self._loop = asyncio.get_running_loop()
            mode: BridgeMode = "sync"
            reason = "worker disabled by configuration"
            if self._config.use_worker:
                try:
                    await self._start_worker()
                    mode = "worker"
                    reason = "worker responded to ping"
                except (OSError, RuntimeError, ComputeError, asyncio.TimeoutError) as e:
                    error = str(e) or type(e).__name__
                    reason = f"worker unavailable: {error}"
                    logger.warning("bridge.worker_unavailable", error=error)
                    await self._stop_worker()

            self._state = BridgeState.READY
            self._set_mode(mode, reason)
            logger.info("bridge.initialized", mode=mode)
            return BridgeInit(mode=mode)

    async def compute(
        self,
        trades: Iterable[Any] | None,
        settings: AnalyticsSettings | Mapping[str, Any] | None = None,
    ) -> ComputeResponse:
        """
        Run the pipeline for one request.

        Returns:
            ComputeResponse; ``discarded`` is True when a newer call superseded this one

        Raises:
            ComputeError: On transport/serialization failure, worker crash or after terminate()
        """
        if self._state is BridgeState.DISPOSED:
            raise ComputeError("Bridge terminated")
        if self._state is BridgeState.UNINITIALIZED:
            await self.init()

        trade_list = list(trades or [])
        if not trade_list:
            return ComputeResponse(data=None, ms=0.0, mode=self._mode)

        config = coerce_settings(settings)
        self._request_id += 1
        request_id = self._request_id
        self._supersede_pending()

        if self._mode == "worker":
            return await self._compute_on_worker(request_id, trade_list, config)
        return self._compute_inline(trade_list, config)

    async def terminate(self) -> None:
        """Stop the worker and reject any pending request. Idempotent."""
        if self._state is BridgeState.DISPOSED:
            return
        self._state = BridgeState.DISPOSED

        pending, self._pending = self._pending, None
        if pending is not None and not pending.future.done():
            pending.future.set_exception(ComputeError("Bridge terminated"))

        await self._stop_worker()
        logger.info("bridge.terminated")

    # ------------------------------------------------------------------ internals

    def _supersede_pending(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.future.done():
            logger.debug("bridge.request_discarded", request_id=pending.request_id)
            pending.future.set_result(ComputeResponse(data=None, ms=0.0, mode="worker", discarded=True))

    def _compute_inline(self, trades: list[Any], settings: AnalyticsSettings) -> ComputeResponse:
        start = time.perf_counter()
        try:
            result = compute_analytics(trades, settings)
        except Exception as e:
            raise ComputeError(f"Inline computation failed: {e}") from e
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("bridge.computed", mode="sync", ms=round(elapsed_ms, 2))
        return ComputeResponse(data=result, ms=elapsed_ms, mode="sync")

    async def _compute_on_worker(
        self, request_id: int, trades: list[Any], settings: AnalyticsSettings
    ) -> ComputeResponse:
        assert self._loop is not None
        future: "asyncio.Future[ComputeResponse]" = self._loop.create_future()
        self._pending = _PendingRequest(request_id, future)
        try:
            self._send(compute_request(request_id, trades, settings))
        except (ComputeError, ProtocolError, OSError, ValueError, TypeError, AttributeError, pickle.PicklingError) as e:
            self._pending = None
            raise ComputeError(f"Failed to dispatch request {request_id}: {e}") from e
        return await future

    def _send(self, message: dict[str, Any]) -> None:
        if self._conn is None:
            raise ComputeError("Worker connection is closed")
        self._conn.send(message)

    async def _start_worker(self) -> None:
        assert self._loop is not None
        ctx = multiprocessing.get_context("spawn")
        parent_conn, child_conn = ctx.Pipe()
        process = ctx.Process(target=worker_main, args=(child_conn,), name="tradestats-compute", daemon=True)
        process.start()
        child_conn.close()

        self._process = process
        self._conn = parent_conn
        self._pong = self._loop.create_future()
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(parent_conn, self._loop),
            name="tradestats-compute-reader",
            daemon=True,
        )
        self._reader.start()

        self._send(ping_message())
        await asyncio.wait_for(self._pong, timeout=self._config.ping_timeout_seconds)
        logger.debug("bridge.worker_ready", pid=process.pid)

    def _read_loop(self, conn: Connection, loop: asyncio.AbstractEventLoop) -> None:
        """Reader thread: forward every worker message to the loop."""
        while True:
            try:
                message = conn.recv()
            except (EOFError, OSError):
                break
            try:
                loop.call_soon_threadsafe(self._on_message, message)
            except RuntimeError:
                return  # loop closed
        try:
            loop.call_soon_threadsafe(self._on_worker_exit)
        except RuntimeError:
            pass  # loop closed

    def _on_message(self, message: Any) -> None:
        try:
            response = validate_response(message)
        except ProtocolError as e:
            logger.error("bridge.protocol_error", error=str(e))
            self._fail_pending(ComputeError(str(e)))
            return

        kind = response["type"]
        if kind == "pong":
            if self._pong is not None and not self._pong.done():
                self._pong.set_result(True)
            return

        request_id = response["id"]
        pending = self._pending
        if pending is None or pending.request_id != request_id:
            logger.debug("bridge.stale_response_ignored", request_id=request_id, kind=kind)
            return

        self._pending = None
        if pending.future.done():
            return
        if kind == "error":
            pending.future.set_exception(ComputeError(response["error"]))
            return

        try:
            data = AnalyticsResult.model_validate(response["data"]) if response["data"] is not None else None
        except ValueError as e:
            pending.future.set_exception(ComputeError(f"Malformed result from worker: {e}"))
            return
        logger.debug("bridge.computed", mode="worker", request_id=request_id, ms=round(response["ms"], 2))
        pending.future.set_result(ComputeResponse(data=data, ms=float(response["ms"]), mode="worker"))

    def _on_worker_exit(self) -> None:
        if self._state is BridgeState.DISPOSED or self._conn is None:
            return
        logger.warning("bridge.worker_exited", exitcode=self._process.exitcode if self._process else None)
        if self._pong is not None and not self._pong.done():
            self._pong.set_exception(ComputeError("Worker exited before answering ping"))
        self._fail_pending(ComputeError("Worker exited"))
        self._release_worker()
        if self._state is BridgeState.READY:
            self._set_mode("sync", "worker exited")

    def _fail_pending(self, error: ComputeError) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.future.done():
            pending.future.set_exception(error)

    def _set_mode(self, mode: BridgeMode, reason: str) -> None:
        self._mode = mode
        if self._event_bus is not None:
            self._event_bus.publish(BridgeModeChangedEvent(mode=mode, reason=reason))

    def _release_worker(self) -> None:
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._process = None
        self._reader = None
        self._pong = None

    async def _stop_worker(self) -> None:
        process, conn, reader = self._process, self._conn, self._reader
        if process is None:
            self._release_worker()
            return

        if conn is not None:
            try:
                conn.send(shutdown_message())
            except OSError:
                pass  # worker already gone

        timeout = self._config.shutdown_timeout_seconds
        await asyncio.to_thread(process.join, timeout)
        if process.is_alive():
            logger.warning("bridge.worker_kill", pid=process.pid)
            process.terminate()
            await asyncio.to_thread(process.join, timeout)
        if reader is not None:
            await asyncio.to_thread(reader.join, timeout)
        self._release_worker()
