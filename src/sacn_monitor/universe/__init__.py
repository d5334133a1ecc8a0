"""Per-universe channel state."""

from sacn_monitor.universe.manager import UniverseManager
from sacn_monitor.universe.universe import CHANNEL_COUNT, Channel, Universe, UniverseInfo

__all__ = [
    "CHANNEL_COUNT",
    "Channel",
    "Universe",
    "UniverseInfo",
    "UniverseManager",
]
