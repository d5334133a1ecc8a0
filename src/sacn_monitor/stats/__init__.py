"""Packet rate and loss statistics."""

from sacn_monitor.stats.tracker import (
    SourceInfo,
    StatsTracker,
    UniverseStatsSnapshot,
    loss_percentage,
    lost_packets,
    sequence_gap,
)

__all__ = [
    "SourceInfo",
    "StatsTracker",
    "UniverseStatsSnapshot",
    "loss_percentage",
    "lost_packets",
    "sequence_gap",
]
