"""
Process-wide configuration and logging.

Public API:
    - get_system_config / reload_system_config: YAML-backed SystemConfig singleton
    - SystemConfig, AnalyticsConfig, ComputeConfig: configuration sections
    - LoggerFactory, LoggingConfig: structlog setup
"""

from tradestats.system.config import (
    AnalyticsConfig,
    ComputeConfig,
    SystemConfig,
    get_system_config,
    reload_system_config,
)
from tradestats.system.log_system import LoggerFactory, LoggingConfig

__all__ = [
    "AnalyticsConfig",
    "ComputeConfig",
    "LoggerFactory",
    "LoggingConfig",
    "SystemConfig",
    "get_system_config",
    "reload_system_config",
]
