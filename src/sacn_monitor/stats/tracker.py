"""
Statistics Tracker: packet rate and sequence-gap loss per universe.

Every universe keeps lifetime counters, a rate window of arrival
timestamps and a loss window of (timestamp, received, lost) events.
Both windows are pruned lazily on record and on query. Each source
(CID) within a universe keeps its own sequence state and counters.

Sequence loss for a (universe, source) pair is only meaningful when
that pair's packets are recorded in arrival order, so all mutation of
one universe is serialised by that universe's lock.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

import structlog

from sacn_monitor.core.config import StatsConfig
from sacn_monitor.core.locks import ReadWriteLock

logger = structlog.get_logger()

SEQUENCE_MODULO = 256


def sequence_gap(last_sequence: int, sequence: int) -> int:
    """
    Forward distance from the expected sequence (last + 1) to `sequence`.

    Zero means the packet arrived in order; otherwise the result is in
    [1, 255].
    """
    expected = (last_sequence + 1) % SEQUENCE_MODULO
    if sequence == expected:
        return 0
    if sequence > expected:
        return sequence - expected
    return SEQUENCE_MODULO - expected + sequence


def lost_packets(last_sequence: int, sequence: int, restart_threshold: int) -> int:
    """Packets lost between two consecutive sequences; large gaps count as a source restart."""
    gap = sequence_gap(last_sequence, sequence)
    if gap >= restart_threshold:
        return 0
    return gap


def loss_percentage(received: int, lost: int) -> float:
    total = received + lost
    if total == 0:
        return 0.0
    return lost / total * 100


class LossEvent(NamedTuple):
    timestamp: float
    received: int
    lost: int


@dataclass(frozen=True)
class SourceInfo:
    """Snapshot of one source's counters."""

    cid: bytes
    name: str
    last_sequence: int
    last_seen: Optional[float]
    packet_count: int
    lost_packets: int

    @property
    def loss_percentage(self) -> float:
        return loss_percentage(self.packet_count, self.lost_packets)


@dataclass(frozen=True)
class UniverseStatsSnapshot:
    """Snapshot of a universe's lifetime counters."""

    universe_id: int
    packet_count: int
    lost_packets: int
    last_packet: Optional[float]
    source_count: int


class _Source:
    __slots__ = ("cid", "name", "last_sequence", "last_seen", "packet_count", "lost_packets")

    def __init__(self, cid: bytes, name: str):
        self.cid = cid
        self.name = name
        self.last_sequence = 0
        self.last_seen: Optional[float] = None
        self.packet_count = 0
        self.lost_packets = 0

    def snapshot(self) -> SourceInfo:
        return SourceInfo(
            cid=self.cid,
            name=self.name,
            last_sequence=self.last_sequence,
            last_seen=self.last_seen,
            packet_count=self.packet_count,
            lost_packets=self.lost_packets,
        )


class _UniverseStats:
    def __init__(self, universe_id: int):
        self.universe_id = universe_id
        self.lock = ReadWriteLock()
        self.sources: dict[bytes, _Source] = {}
        self.packet_count = 0
        self.lost_packets = 0
        self.last_packet: Optional[float] = None
        self.rate_window: deque[float] = deque()
        self.loss_window: deque[LossEvent] = deque()

    def prune(self, now: float, rate_window_s: float, loss_window_s: float) -> None:
        """Drop window entries at or before their cutoff. Caller holds the write lock."""
        rate_cutoff = now - rate_window_s
        while self.rate_window and self.rate_window[0] <= rate_cutoff:
            self.rate_window.popleft()

        loss_cutoff = now - loss_window_s
        while self.loss_window and self.loss_window[0].timestamp <= loss_cutoff:
            self.loss_window.popleft()

    def reset(self) -> None:
        self.packet_count = 0
        self.lost_packets = 0
        self.rate_window.clear()
        self.loss_window.clear()
        for source in self.sources.values():
            source.packet_count = 0
            source.lost_packets = 0


class StatsTracker:
    """Tracks rate and loss for every universe and source."""

    def __init__(
        self,
        config: Optional[StatsConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or StatsConfig()
        self._clock = clock
        self._universes: dict[int, _UniverseStats] = {}
        self._lock = ReadWriteLock()

    def _get(self, universe_id: int) -> Optional[_UniverseStats]:
        with self._lock.read():
            return self._universes.get(universe_id)

    def _get_or_create(self, universe_id: int) -> _UniverseStats:
        stats = self._get(universe_id)
        if stats is not None:
            return stats
        with self._lock.write():
            stats = self._universes.get(universe_id)
            if stats is None:
                stats = _UniverseStats(universe_id)
                self._universes[universe_id] = stats
            return stats

    def record_packet(
        self,
        universe_id: int,
        source_cid: bytes,
        source_name: str,
        sequence: int,
    ) -> int:
        """
        Record one packet and return the number of packets detected as lost.

        A gap at or above the restart threshold is treated as the source
        resetting its sequence counter and counts as zero loss.
        """
        stats = self._get_or_create(universe_id)
        cid = bytes(source_cid)

        with stats.lock.write():
            now = self._clock()
            stats.packet_count += 1
            stats.last_packet = now
            stats.rate_window.append(now)

            source = stats.sources.get(cid)
            if source is None:
                source = _Source(cid, source_name)
                stats.sources[cid] = source

            lost = 0
            if source.packet_count > 0:
                lost = lost_packets(
                    source.last_sequence, sequence, self.config.restart_threshold
                )
                if lost:
                    source.lost_packets += lost
                    stats.lost_packets += lost

            stats.loss_window.append(LossEvent(now, 1, lost))
            stats.prune(now, self.config.rate_window_s, self.config.loss_window_s)

            source.last_sequence = sequence
            source.last_seen = now
            source.packet_count += 1
            source.name = source_name

        return lost

    def packet_rate(self, universe_id: int) -> float:
        """Packets per second over the rate window."""
        stats = self._get(universe_id)
        if stats is None:
            return 0.0

        with stats.lock.write():
            stats.prune(self._clock(), self.config.rate_window_s, self.config.loss_window_s)
            count = len(stats.rate_window)

        return count / self.config.rate_window_s

    def loss_percentage(self, universe_id: int) -> float:
        """Lifetime loss: lost / (received + lost) * 100."""
        stats = self._get(universe_id)
        if stats is None:
            return 0.0

        with stats.lock.read():
            return loss_percentage(stats.packet_count, stats.lost_packets)

    def recent_loss_percentage(self, universe_id: int) -> float:
        """Loss over the loss window."""
        stats = self._get(universe_id)
        if stats is None:
            return 0.0

        with stats.lock.write():
            stats.prune(self._clock(), self.config.rate_window_s, self.config.loss_window_s)
            received = sum(event.received for event in stats.loss_window)
            lost = sum(event.lost for event in stats.loss_window)

        return loss_percentage(received, lost)

    def source_loss_percentage(self, universe_id: int, source_cid: bytes) -> float:
        stats = self._get(universe_id)
        if stats is None:
            return 0.0

        with stats.lock.read():
            source = stats.sources.get(bytes(source_cid))
            if source is None:
                return 0.0
            return loss_percentage(source.packet_count, source.lost_packets)

    def sources(self, universe_id: int) -> list[SourceInfo]:
        """Sources seen on a universe, in order of first appearance."""
        stats = self._get(universe_id)
        if stats is None:
            return []

        with stats.lock.read():
            return [source.snapshot() for source in stats.sources.values()]

    def universe_stats(self, universe_id: int) -> Optional[UniverseStatsSnapshot]:
        stats = self._get(universe_id)
        if stats is None:
            return None

        with stats.lock.read():
            return UniverseStatsSnapshot(
                universe_id=stats.universe_id,
                packet_count=stats.packet_count,
                lost_packets=stats.lost_packets,
                last_packet=stats.last_packet,
                source_count=len(stats.sources),
            )

    def universe_ids(self) -> list[int]:
        with self._lock.read():
            return sorted(self._universes)

    def reset_universe(self, universe_id: int) -> None:
        """Zero a universe's counters and windows; sources keep their identity and name."""
        stats = self._get(universe_id)
        if stats is None:
            return

        with stats.lock.write():
            stats.reset()
        logger.info("Reset universe statistics", universe=universe_id)

    def reset_all(self) -> None:
        """Forget every tracked universe."""
        with self._lock.write():
            self._universes = {}
        logger.info("Reset all statistics")

    def remove(self, universe_id: int) -> None:
        with self._lock.write():
            self._universes.pop(universe_id, None)
