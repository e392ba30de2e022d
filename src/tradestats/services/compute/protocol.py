"""
Worker message protocol.

Messages are plain dicts sent over a multiprocessing pipe and validated
against the JSON Schema contracts in tradestats/contracts/schemas/worker/:

    Request:  {"type": "compute", "trades", "settings", "id", "issues"?} | {"type": "ping"} | {"type": "shutdown"}
    Response: {"type": "result", "data", "id", "ms"} | {"type": "error", "error", "id"} | {"type": "pong"}
"""

from typing import Any, Iterable, Mapping

import jsonschema

from tradestats.contracts import load_schema
from tradestats.libraries.performance.models import AnalyticsSettings, Trade

REQUEST_SCHEMA = "worker/compute_request.v1.json"
RESPONSE_SCHEMA = "worker/compute_response.v1.json"


class ProtocolError(ValueError):
    """Message does not match the worker protocol contract."""


def _validate(message: Any, schema_name: str) -> dict[str, Any]:
    if not isinstance(message, dict):
        raise ProtocolError(f"Expected a dict message, got {type(message).__name__}")
    try:
        load_schema(schema_name).validate(message)
    except jsonschema.ValidationError as e:
        raise ProtocolError(f"Invalid message against {schema_name}: {e.message}") from e
    return message


def validate_request(message: Any) -> dict[str, Any]:
    """Validate a bridge -> worker message."""
    return _validate(message, REQUEST_SCHEMA)


def validate_response(message: Any) -> dict[str, Any]:
    """Validate a worker -> bridge message."""
    return _validate(message, RESPONSE_SCHEMA)


def compute_request(request_id: int, trades: Iterable[Any], settings: AnalyticsSettings) -> dict[str, Any]:
    """
    Build a compute request. Trade models are sent as plain dicts.

    A dumped model no longer shows which of its fields were malformed, so
    those flags travel separately under ``issues``, keyed by trade index.
    """
    payload: list[Any] = []
    issues: dict[str, list[str]] = {}
    for index, trade in enumerate(trades):
        if isinstance(trade, Trade):
            if trade.issues:
                issues[str(index)] = list(trade.issues)
            trade = trade.model_dump()
        payload.append(trade)

    message: dict[str, Any] = {
        "type": "compute",
        "trades": payload,
        "settings": settings.model_dump(),
        "id": request_id,
    }
    if issues:
        message["issues"] = issues
    return validate_request(message)


def request_trades(request: Mapping[str, Any]) -> list[Any]:
    """Trades of a compute request, with the malformed-field flags restored."""
    trades = list(request["trades"])
    for index, fields in (request.get("issues") or {}).items():
        position = int(index)
        if 0 <= position < len(trades) and isinstance(trades[position], Mapping):
            trades[position] = Trade.model_validate(trades[position]).with_issues(fields)
    return trades


def ping_message() -> dict[str, Any]:
    return {"type": "ping"}


def shutdown_message() -> dict[str, Any]:
    return {"type": "shutdown"}


def pong_message() -> dict[str, Any]:
    return {"type": "pong"}


def result_message(request_id: int, data: Mapping[str, Any] | None, ms: float) -> dict[str, Any]:
    return {"type": "result", "data": None if data is None else dict(data), "id": request_id, "ms": ms}


def error_message(error: str, request_id: int | None = None) -> dict[str, Any]:
    return {"type": "error", "error": error, "id": request_id}
