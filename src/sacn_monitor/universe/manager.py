"""
Universe State Manager: registry of discovered universes.

Universes are created lazily on first reference and live until removed
or pruned. The registry lock only guards insertion and removal; channel
updates lock the individual universe.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import structlog

from sacn_monitor.core.locks import ReadWriteLock
from sacn_monitor.sacn.packet import Packet
from sacn_monitor.universe.universe import Universe

logger = structlog.get_logger()


class UniverseManager:
    """Owns the mapping from universe ID to Universe."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._universes: dict[int, Universe] = {}
        self._lock = ReadWriteLock()

    def get_or_create(self, universe_id: int) -> Universe:
        """Return the universe, creating it on first reference."""
        with self._lock.read():
            universe = self._universes.get(universe_id)
        if universe is not None:
            return universe

        with self._lock.write():
            universe = self._universes.get(universe_id)
            if universe is None:
                universe = Universe(universe_id, clock=self._clock)
                self._universes[universe_id] = universe
                logger.debug("Discovered universe", universe=universe_id)
            return universe

    def get(self, universe_id: int) -> Optional[Universe]:
        with self._lock.read():
            return self._universes.get(universe_id)

    def update(
        self,
        universe_id: int,
        channel_data: bytes,
        source_name: str,
        cid: bytes,
        priority: int,
        sequence: int,
    ) -> None:
        """Apply a decoded packet's payload to its universe."""
        self.get_or_create(universe_id).update(channel_data, source_name, cid, priority, sequence)

    def apply(self, packet: Packet) -> None:
        self.update(
            packet.universe,
            packet.channel_data,
            packet.source_name,
            packet.cid,
            packet.priority,
            packet.sequence,
        )

    def get_all(self) -> list[Universe]:
        """All universes sorted by ID."""
        with self._lock.read():
            universes = list(self._universes.values())
        return sorted(universes, key=lambda u: u.id)

    def get_active(self, timeout: float) -> list[Universe]:
        """Universes that received a packet within `timeout` seconds, sorted by ID."""
        return [u for u in self.get_all() if not u.is_stale(timeout)]

    def prune_stale(self, timeout: float) -> int:
        """Remove stale universes; returns how many were removed."""
        return len(self.prune_stale_ids(timeout))

    def prune_stale_ids(self, timeout: float) -> list[int]:
        """Remove stale universes; returns the removed IDs in ascending order."""
        with self._lock.write():
            stale = [uid for uid, u in self._universes.items() if u.is_stale(timeout)]
            for uid in stale:
                del self._universes[uid]

        if stale:
            logger.info("Pruned stale universes", universes=sorted(stale), timeout_s=timeout)
        return sorted(stale)

    def remove(self, universe_id: int) -> None:
        with self._lock.write():
            self._universes.pop(universe_id, None)

    def count(self) -> int:
        with self._lock.read():
            return len(self._universes)
