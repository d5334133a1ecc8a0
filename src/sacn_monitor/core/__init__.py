"""Core system components for sACN Monitor."""

from sacn_monitor.core.config import MonitorConfig, ReceiverConfig, Settings, StatsConfig
from sacn_monitor.core.exceptions import (
    SacnMonitorError,
    DecodeError,
    ReceiverError,
    ReceiverBindError,
    ReceiverAlreadyStartedError,
    ConfigError,
)

__all__ = [
    "Settings",
    "ReceiverConfig",
    "StatsConfig",
    "MonitorConfig",
    "SacnMonitorError",
    "DecodeError",
    "ReceiverError",
    "ReceiverBindError",
    "ReceiverAlreadyStartedError",
    "ConfigError",
]
