"""
JSON Schema contracts.

Schemas live under ``contracts/schemas`` and are the source of truth for
event payloads and worker messages; the pydantic models and message
builders validate against them.

    envelope.v1.json                      fields shared by every event
    analytics/analytics_state.v1.json     result store transition payload
    worker/compute_request.v1.json        bridge -> worker messages
    worker/compute_response.v1.json       worker -> bridge messages
"""

import json
from functools import lru_cache
from importlib import resources

from jsonschema import Draft202012Validator, FormatChecker

SCHEMA_PACKAGE = "tradestats.contracts.schemas"


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> Draft202012Validator:
    """
    Load, check and compile a schema once per process.

    Args:
        schema_name: Path relative to the schema package, e.g. "worker/compute_request.v1.json"

    Raises:
        FileNotFoundError: If no such schema is packaged
    """
    resource = resources.files(SCHEMA_PACKAGE).joinpath(schema_name)
    if not resource.is_file():
        raise FileNotFoundError(f"Schema not found: {schema_name} in package {SCHEMA_PACKAGE}")
    schema = json.loads(resource.read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema, format_checker=FormatChecker())


__all__ = ["SCHEMA_PACKAGE", "load_schema"]
