"""
sACN Monitor: ingestion loop and read-only query surface.

Wires the receiver to the universe manager and the statistics tracker.
A single ingestion thread drains the receiver queue and applies every
packet, in arrival order, to both consumers. Display code polls the
query methods, which never block on the network and only return copies.
"""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Optional

import structlog

from sacn_monitor.core.config import Settings
from sacn_monitor.sacn.packet import Packet
from sacn_monitor.sacn.receiver import Receiver
from sacn_monitor.stats.tracker import SourceInfo, StatsTracker
from sacn_monitor.universe.manager import UniverseManager
from sacn_monitor.universe.universe import Channel, UniverseInfo

logger = structlog.get_logger()

_POLL_INTERVAL_S = 0.1


@dataclass(frozen=True)
class UniverseSummary:
    """Per-universe figures for one display tick."""

    universe_id: int
    packet_rate: float
    loss_percentage: float
    recent_loss_percentage: float
    packet_count: int
    lost_packets: int
    source_count: int
    active_channels: int


class SacnMonitor:
    """
    Owns the receiver, universe manager and statistics tracker.

    `process` is the whole ingestion step; the background thread just
    calls it for every queued packet.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        receiver: Optional[Receiver] = None,
        universes: Optional[UniverseManager] = None,
        tracker: Optional[StatsTracker] = None,
    ):
        self.settings = settings or Settings()
        self.receiver = receiver or Receiver(self.settings.receiver)
        self.universes = universes or UniverseManager()
        self.tracker = tracker or StatsTracker(self.settings.stats)

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._processed = 0

    def start(self) -> None:
        """
        Start the receiver and the ingestion thread.

        Socket failures propagate as ReceiverBindError.
        """
        logger.info("Starting sACN monitor")
        self._stop_event.clear()
        self.receiver.start(self._stop_event)

        self._thread = threading.Thread(
            target=self._ingest_loop,
            name="sACN-Ingest",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop receiving, drain the queue and join the ingestion thread."""
        self._stop_event.set()
        self.receiver.stop()

        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

        logger.info(
            "sACN monitor stopped",
            processed=self._processed,
            universes=self.universes.count(),
        )

    def _ingest_loop(self) -> None:
        prune_interval = self.settings.monitor.prune_interval_s
        next_prune = time.monotonic() + prune_interval if prune_interval else None

        packets = self.receiver.packets

        while True:
            try:
                packet = packets.get(timeout=_POLL_INTERVAL_S)
            except queue.Empty:
                if self.receiver.closed and packets.empty():
                    break
            else:
                self.process(packet)

            # Idle polls still reach the prune deadline.
            if next_prune is not None and time.monotonic() >= next_prune:
                self.prune_stale(self.settings.monitor.stale_timeout_s)
                next_prune = time.monotonic() + prune_interval

    def process(self, packet: Packet) -> None:
        """Apply one decoded packet to the universe state and the statistics."""
        self.universes.apply(packet)
        self.tracker.record_packet(
            packet.universe,
            packet.cid,
            packet.source_name,
            packet.sequence,
        )
        self._processed += 1

    # -------------------------------------------------------------------------
    # Query surface
    # -------------------------------------------------------------------------

    def list_universes(self) -> list[UniverseInfo]:
        """All known universes sorted by ID."""
        return [u.info() for u in self.universes.get_all()]

    def active_universes(self, timeout: Optional[float] = None) -> list[UniverseInfo]:
        if timeout is None:
            timeout = self.settings.monitor.stale_timeout_s
        return [u.info() for u in self.universes.get_active(timeout)]

    def universe(self, universe_id: int) -> Optional[UniverseInfo]:
        universe = self.universes.get(universe_id)
        return universe.info() if universe else None

    def channels(self, universe_id: int) -> list[Channel]:
        universe = self.universes.get(universe_id)
        return universe.channels() if universe else []

    def active_channel_count(self, universe_id: int) -> int:
        universe = self.universes.get(universe_id)
        return universe.active_channel_count() if universe else 0

    def sources(self, universe_id: int) -> list[SourceInfo]:
        return self.tracker.sources(universe_id)

    def universe_summary(self, universe_id: int) -> Optional[UniverseSummary]:
        universe = self.universes.get(universe_id)
        stats = self.tracker.universe_stats(universe_id)
        if universe is None and stats is None:
            return None

        return UniverseSummary(
            universe_id=universe_id,
            packet_rate=self.tracker.packet_rate(universe_id),
            loss_percentage=self.tracker.loss_percentage(universe_id),
            recent_loss_percentage=self.tracker.recent_loss_percentage(universe_id),
            packet_count=stats.packet_count if stats else 0,
            lost_packets=stats.lost_packets if stats else 0,
            source_count=stats.source_count if stats else 0,
            active_channels=universe.active_channel_count() if universe else 0,
        )

    def prune_stale(self, timeout: float) -> int:
        """Drop stale universes from the manager and their statistics from the tracker."""
        removed = self.universes.prune_stale_ids(timeout)
        for universe_id in removed:
            self.tracker.remove(universe_id)
        return len(removed)

    def reset_stats(self, universe_id: Optional[int] = None) -> None:
        """Reset one universe's statistics, or all of them when no ID is given."""
        if universe_id is None:
            self.tracker.reset_all()
        else:
            self.tracker.reset_universe(universe_id)
