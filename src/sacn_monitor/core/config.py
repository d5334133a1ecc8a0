"""
Configuration Management for sACN Monitor.

Uses Pydantic Settings for type-safe configuration with environment
variable support and YAML file loading.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sacn_monitor.core.exceptions import ConfigError

E131_PORT = 5568
MAX_UNIVERSE = 63999


class ReceiverConfig(BaseModel):
    """UDP receiver and multicast membership configuration."""
    bind_address: str = ""  # "" = all interfaces
    port: int = Field(default=E131_PORT, ge=0, le=65535)
    universe_start: int = Field(default=1, ge=1, le=MAX_UNIVERSE)
    universe_end: int = Field(default=63, ge=1, le=MAX_UNIVERSE)
    queue_size: int = Field(default=1000, ge=1)
    buffer_size: int = Field(default=1500, ge=126)
    read_timeout_s: float = Field(default=0.5, gt=0)
    reuse_address: bool = True

    @model_validator(mode="after")
    def _check_universe_range(self) -> "ReceiverConfig":
        if self.universe_start > self.universe_end:
            raise ValueError(
                f"universe_start ({self.universe_start}) must not exceed "
                f"universe_end ({self.universe_end})"
            )
        return self


class StatsConfig(BaseModel):
    """Rate and loss window configuration."""
    rate_window_s: float = Field(default=1.0, gt=0)
    loss_window_s: float = Field(default=60.0, gt=0)
    restart_threshold: int = Field(default=200, ge=1, le=256)


class MonitorConfig(BaseModel):
    """Ingestion and polling configuration."""
    stale_timeout_s: float = Field(default=5.0, ge=0)
    refresh_interval_s: float = Field(default=0.1, gt=0)
    prune_interval_s: Optional[float] = Field(default=None, gt=0)  # None = never prune


class Settings(BaseSettings):
    """
    Main application settings.

    Can be configured via:
    - Environment variables (prefixed with SACN_MONITOR_)
    - YAML config file
    - Direct instantiation
    """

    model_config = SettingsConfigDict(
        env_prefix="SACN_MONITOR_",
        env_nested_delimiter="__",
    )

    receiver: ReceiverConfig = Field(default_factory=ReceiverConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    # Debug
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(str(e), path=str(path)) from e

        if not isinstance(data, dict):
            raise ConfigError("top level must be a mapping", path=str(path))

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(str(e), path=str(path)) from e

    def to_yaml(self, path: Path) -> None:
        """Save settings to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)
