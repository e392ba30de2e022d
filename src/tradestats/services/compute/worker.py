"""
Compute worker process.

Runs in a spawned child process: receives protocol messages on its end of
the pipe, runs the analytics pipeline and answers every request. The worker
never raises out of its loop; pipeline failures become error messages.
"""

import time
from multiprocessing.connection import Connection
from typing import Any

from tradestats.libraries.performance import compute_analytics
from tradestats.services.compute.protocol import (
    ProtocolError,
    error_message,
    pong_message,
    request_trades,
    result_message,
    validate_request,
)
from tradestats.system import LoggerFactory

logger = LoggerFactory.get_logger()


def handle_message(message: Any) -> dict[str, Any] | None:
    """
    Answer one request.

    Returns:
        Response message, or None for a shutdown request
    """
    try:
        request = validate_request(message)
    except ProtocolError as e:
        request_id = message.get("id") if isinstance(message, dict) else None
        return error_message(str(e), request_id if isinstance(request_id, int) else None)

    if request["type"] == "ping":
        return pong_message()
    if request["type"] == "shutdown":
        return None

    request_id = request["id"]
    start = time.perf_counter()
    try:
        result = compute_analytics(request_trades(request), request["settings"])
    except Exception as e:
        logger.error("worker.compute_failed", request_id=request_id, error=str(e))
        return error_message(f"{type(e).__name__}: {e}", request_id)
    elapsed_ms = (time.perf_counter() - start) * 1000

    return result_message(request_id, result.model_dump() if result is not None else None, elapsed_ms)


def worker_main(conn: Connection) -> None:
    """Process entry point: serve requests until shutdown or the pipe closes."""
    logger.debug("worker.started")
    try:
        while True:
            try:
                message = conn.recv()
            except (EOFError, OSError):
                break
            reply = handle_message(message)
            if reply is None:
                break
            conn.send(reply)
    finally:
        conn.close()
        logger.debug("worker.stopped")
