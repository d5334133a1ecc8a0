"""Per-universe channel state."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from sacn_monitor.core.locks import ReadWriteLock

CHANNEL_COUNT = 512


@dataclass(frozen=True)
class Channel:
    """Snapshot of one DMX slot."""

    value: int = 0
    active: bool = False  # set once any packet has covered this slot
    last_update: Optional[float] = None


@dataclass(frozen=True)
class UniverseInfo:
    """Snapshot of universe metadata."""

    id: int
    source_name: str
    source_cid: bytes
    priority: int
    last_sequence: int
    last_packet: Optional[float]
    packet_count: int


class Universe:
    """
    Live state of one sACN universe.

    Holds the 512 channels plus metadata of whichever source sent the
    most recent packet. Multiple sources are not merged: the latest
    packet's values win. All accessors return copies.
    """

    def __init__(self, universe_id: int, clock: Callable[[], float] = time.time):
        self.id = universe_id
        self._clock = clock
        self._lock = ReadWriteLock()

        self._values = bytearray(CHANNEL_COUNT)
        self._active = [False] * CHANNEL_COUNT
        self._updated: list[Optional[float]] = [None] * CHANNEL_COUNT

        self._source_name = ""
        self._source_cid = bytes(16)
        self._priority = 0
        self._last_sequence = 0
        self._last_packet: Optional[float] = None
        self._packet_count = 0

    def update(
        self,
        channel_data: bytes,
        source_name: str,
        source_cid: bytes,
        priority: int,
        sequence: int,
    ) -> None:
        """Apply one packet's payload and metadata."""
        with self._lock.write():
            now = self._clock()

            self._source_name = source_name
            self._source_cid = bytes(source_cid)
            self._priority = priority
            self._last_sequence = sequence
            self._last_packet = now
            self._packet_count += 1

            count = min(len(channel_data), CHANNEL_COUNT)
            self._values[:count] = channel_data[:count]
            for i in range(count):
                self._active[i] = True
                self._updated[i] = now

    def channel(self, index: int) -> Channel:
        """Return the channel at a 0-based index; out of range gives an inactive zero channel."""
        if not 0 <= index < CHANNEL_COUNT:
            return Channel()
        with self._lock.read():
            return Channel(self._values[index], self._active[index], self._updated[index])

    def channels(self) -> list[Channel]:
        """Return copies of all 512 channels."""
        with self._lock.read():
            return [
                Channel(value, active, updated)
                for value, active, updated in zip(self._values, self._active, self._updated)
            ]

    def channel_values(self) -> bytes:
        with self._lock.read():
            return bytes(self._values)

    def active_channel_count(self) -> int:
        with self._lock.read():
            return sum(self._active)

    @property
    def last_packet(self) -> Optional[float]:
        with self._lock.read():
            return self._last_packet

    def is_stale(self, timeout: float) -> bool:
        """
        True when no packet arrived within `timeout` seconds.

        A universe that has never received a packet is always stale.
        """
        with self._lock.read():
            last = self._last_packet
        if last is None:
            return True
        return self._clock() - last > timeout

    def info(self) -> UniverseInfo:
        with self._lock.read():
            return UniverseInfo(
                id=self.id,
                source_name=self._source_name,
                source_cid=self._source_cid,
                priority=self._priority,
                last_sequence=self._last_sequence,
                last_packet=self._last_packet,
                packet_count=self._packet_count,
            )
