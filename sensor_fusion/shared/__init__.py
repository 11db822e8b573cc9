"""Shared utilities and models for Sensor Fusion."""

from sensor_fusion.shared.config import Settings, get_settings, settings
from sensor_fusion.shared.logger import (
    FusionLogger,
    Logger,
    get_logger,
    log_config_status,
    log_cycle_summary,
    log_result_table,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "settings",
    # Logger
    "FusionLogger",
    "Logger",
    "get_logger",
    "log_config_status",
    "log_cycle_summary",
    "log_result_table",
]
