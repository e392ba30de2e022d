"""
Structured logging for TradeStats.

structlog front end over the stdlib logging tree, so records from
third-party libraries share the same handlers. Console output is a compact
single line per event; the optional file output is JSON lines.

Event names are dotted ``component.what_happened`` strings:

    logger = LoggerFactory.get_logger()
    logger.info("bridge.initialized", mode="worker")
    logger.warning("bridge.worker_unavailable", error="spawn failed")
"""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_LOG_FILE = Path("logs/tradestats.log")

_LEVEL_COLORS = {
    "debug": "\033[36m",
    "info": "\033[32m",
    "warning": "\033[33m",
    "error": "\033[31m",
    "critical": "\033[35m",
}
_DIM = "\033[90m"
_RESET = "\033[0m"


class LoggingConfig(BaseModel):
    """
    Logging options.

    What each level shows:
        DEBUG    debounce scheduling, cache hits, superseded computations
        INFO     bridge mode, orchestrator lifecycle
        WARNING  worker unavailable or exited, computation errors in the store
        ERROR    unexpected failures in handlers and background tasks

    Timestamp formats: "iso" (2025-10-22T20:50:07.288824+00:00),
    "compact" (251022-205007.28) or "time" (20:50:07.28).
    """

    level: LogLevel = Field(default="INFO", description="Console threshold")
    format: Literal["console", "json"] = Field(default="console", description="Console renderer")
    timestamp_format: Literal["iso", "compact", "time"] = "compact"
    enable_file: bool = Field(default=False, description="Also write JSON lines to file_path")
    file_path: Path | None = Field(default=None, description=f"Log file; {DEFAULT_LOG_FILE} when unset")
    file_level: LogLevel = Field(default="WARNING", description="File threshold")
    file_rotation: bool = True
    max_file_size_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=3, ge=0)


def _timestamper(fmt: str) -> Any:
    """Processor stamping ``log_timestamp`` in UTC with centisecond precision."""

    def stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        if fmt == "iso":
            event_dict["log_timestamp"] = now.isoformat()
        else:
            pattern = "%y%m%d-%H%M%S" if fmt == "compact" else "%H:%M:%S"
            event_dict["log_timestamp"] = f"{now.strftime(pattern)}.{now.microsecond // 10000:02d}"
        return event_dict

    return stamp


class _ConsoleRenderer:
    """``<timestamp> [level] event | key=value ... (logger:line)``"""

    def __init__(self, colors: bool):
        self._colors = colors

    def _paint(self, code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if self._colors else text

    def __call__(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> str:
        values = dict(event_dict)
        timestamp = values.pop("log_timestamp", "")
        level = str(values.pop("level", method_name)).lower()
        event = str(values.pop("event", ""))
        exception = values.pop("exception", None)
        logger_name = values.pop("logger", "")
        filename = values.pop("filename", "")
        lineno = values.pop("lineno", "")

        parts = [timestamp, f"[{self._paint(_LEVEL_COLORS.get(level, ''), level)}]", event]

        context = " ".join(f"{key}={values[key]}" for key in sorted(values) if not key.startswith("_"))
        if context:
            parts.append(f"{self._paint(_DIM, '|')} {context}")

        if filename and lineno:
            module = Path(filename).stem
            origin = logger_name if logger_name.endswith(module) else ".".join(p for p in (logger_name, module) if p)
            parts.append(self._paint(_DIM, f"({origin}:{lineno})"))

        line = " ".join(part for part in parts if part)
        return f"{line}\n{exception}" if exception else line


def _shared_processors(timestamp_format: str) -> list[Any]:
    """Run for structlog events and for foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _timestamper(timestamp_format),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            [structlog.processors.CallsiteParameter.FILENAME, structlog.processors.CallsiteParameter.LINENO]
        ),
    ]


def _file_handler(path: Path, config: LoggingConfig, pre_chain: list[Any]) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler: logging.Handler
    if config.file_rotation:
        handler = RotatingFileHandler(
            path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(config.file_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=structlog.processors.JSONRenderer(), foreign_pre_chain=pre_chain)
    )
    return handler


class LoggerFactory:
    """
    Process-wide logging setup.

    configure() once at startup (the CLI does this); modules call
    get_logger() at import time. An unconfigured factory configures itself
    with defaults on first use.
    """

    _config: LoggingConfig | None = None
    _configured: bool = False

    @classmethod
    def configure(cls, config: LoggingConfig | None = None) -> None:
        config = config or LoggingConfig()
        if config.enable_file and config.file_path is None:
            config.file_path = DEFAULT_LOG_FILE
        cls._config = config

        pre_chain = _shared_processors(config.timestamp_format)

        console = logging.StreamHandler(sys.stderr)
        console.setLevel(config.level)
        console_renderer: Any = (
            cls._console_renderer() if config.format == "console" else structlog.processors.JSONRenderer()
        )
        console.setFormatter(structlog.stdlib.ProcessorFormatter(processor=console_renderer, foreign_pre_chain=pre_chain))

        handlers: list[logging.Handler] = [console]
        threshold = logging.getLevelName(config.level)
        if config.enable_file and config.file_path is not None:
            handlers.append(_file_handler(config.file_path, config, pre_chain))
            threshold = min(threshold, logging.getLevelName(config.file_level))

        logging.basicConfig(level=threshold, handlers=handlers, force=True)

        structlog.configure(
            processors=[
                *pre_chain,
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        cls._configured = True

    @staticmethod
    def _console_renderer() -> _ConsoleRenderer:
        return _ConsoleRenderer(colors=sys.stderr.isatty())

    @classmethod
    def get_logger(cls, name: str | None = None) -> Any:
        """
        Get a logger, named after the calling module unless name is given.

        Example:
            >>> logger = LoggerFactory.get_logger()
            >>> logger.debug("orchestrator.cache_hit", fingerprint="3|a|c|1200")
        """
        if not cls._configured:
            cls.configure()
        if name is None:
            caller = sys._getframe(1)
            name = caller.f_globals.get("__name__", "tradestats")
        return structlog.get_logger(name)

    @classmethod
    def get_config(cls) -> LoggingConfig:
        return cls._config if cls._config is not None else LoggingConfig()

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def reset(cls) -> None:
        """Drop all root handlers and structlog configuration (used by tests)."""
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.setLevel(logging.NOTSET)
        structlog.reset_defaults()
        cls._config = None
        cls._configured = False
