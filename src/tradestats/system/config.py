"""
System configuration.

One configuration for the whole process, loaded from YAML and merged over
built-in defaults:

    analytics:   orchestration behavior (debounce window, result cache)
    compute:     bridge behavior (worker process, ping timeout)
    logging:     logging system (see log_system.LoggingConfig)

Values may reference environment variables as ${VAR}.
"""

import copy
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from tradestats.system.log_system import LoggingConfig as LoggerConfig

DEFAULT_CONFIG_PATH = Path("config/tradestats.yaml")
CONFIG_PATH_ENV = "TRADESTATS_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass
class AnalyticsConfig:
    """Orchestration settings."""

    debounce_ms: int = 300
    cache_max_size: int = 16
    cache_ttl_seconds: float | None = None


@dataclass
class ComputeConfig:
    """Compute bridge settings."""

    use_worker: bool = True
    ping_timeout_seconds: float = 5.0
    shutdown_timeout_seconds: float = 1.0


@dataclass
class LoggingConfig:
    """Logging section as it appears in YAML."""

    level: str = "INFO"
    format: str = "console"
    timestamp_format: str = "compact"
    enable_file: bool = False
    file_path: str = "logs/tradestats.log"
    file_level: str = "WARNING"
    file_rotation: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 3

    def to_logger_config(self) -> LoggerConfig:
        """Convert to the pydantic model consumed by LoggerFactory."""
        return LoggerConfig(
            level=self.level,  # type: ignore[arg-type]
            format=self.format,  # type: ignore[arg-type]
            timestamp_format=self.timestamp_format,  # type: ignore[arg-type]
            enable_file=self.enable_file,
            file_path=Path(self.file_path),
            file_level=self.file_level,  # type: ignore[arg-type]
            file_rotation=self.file_rotation,
            max_file_size_mb=self.max_file_size_mb,
            backup_count=self.backup_count,
        )


@dataclass
class SystemConfig:
    """Complete system configuration."""

    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    compute: ComputeConfig = field(default_factory=ComputeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "SystemConfig":
        """
        Load configuration from YAML, merged over defaults.

        Args:
            path: Config file. Defaults to $TRADESTATS_CONFIG, then
                config/tradestats.yaml. A missing file yields defaults.

        Raises:
            ValueError: If the file is not valid YAML or not a mapping
        """
        if path is None:
            path = os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)
        config_path = Path(path)

        defaults = asdict(cls())
        if not config_path.exists():
            return cls._from_dict(defaults)

        try:
            with config_path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping, got {type(loaded).__name__}")

        merged = _deep_merge(defaults, _substitute_env_vars(loaded))
        return cls._from_dict(merged)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "SystemConfig":
        """Build config from a (possibly partial) dictionary."""
        return cls(
            analytics=_build_section(AnalyticsConfig, data.get("analytics")),
            compute=_build_section(ComputeConfig, data.get("compute")),
            logging=_build_section(LoggingConfig, data.get("logging")),
        )


def _build_section(section_cls: Any, values: dict[str, Any] | None) -> Any:
    known = section_cls.__dataclass_fields__
    return section_cls(**{k: v for k, v in (values or {}).items() if k in known})


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _substitute_env_vars(value: Any) -> Any:
    """Replace ${VAR} with environment values; unknown variables are left as-is."""
    if isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(v) for v in value]
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    return value


_system_config: SystemConfig | None = None


def get_system_config(path: Path | str | None = None) -> SystemConfig:
    """Get the system config singleton. An explicit path forces a reload from it."""
    global _system_config
    if path is not None or _system_config is None:
        _system_config = SystemConfig.load(path)
    return _system_config


def reload_system_config() -> SystemConfig:
    """Force reload of the system config singleton."""
    global _system_config
    _system_config = SystemConfig.load()
    return _system_config
