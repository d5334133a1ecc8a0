"""
sACN Receiver: UDP ingestion of E1.31 data packets.

Binds the E1.31 port on all interfaces, joins the multicast groups for
the configured universe range and decodes datagrams on a dedicated
thread. Decoded packets are handed off through a bounded queue that
sheds the newest packet when full instead of blocking the socket.
"""

from __future__ import annotations

import queue
import socket
import threading
from typing import Callable, Iterator, Optional

import psutil
import structlog

from sacn_monitor.core.config import ReceiverConfig
from sacn_monitor.core.exceptions import (
    DecodeError,
    ReceiverAlreadyStartedError,
    ReceiverBindError,
)
from sacn_monitor.sacn.packet import Packet, decode_packet, multicast_address_for_universe

logger = structlog.get_logger()


def multicast_interfaces() -> list[str]:
    """
    IPv4 addresses of interfaces eligible for multicast membership.

    An interface qualifies when it is up, advertises multicast and is not
    loopback. Platforms that report no flag string (Windows) are assumed
    multicast capable.
    """
    addresses: list[str] = []
    stats = psutil.net_if_stats()

    for name, addr_list in psutil.net_if_addrs().items():
        if_stats = stats.get(name)
        if if_stats is None or not if_stats.isup:
            continue

        flags = set(filter(None, getattr(if_stats, "flags", "").split(",")))
        if "loopback" in flags:
            continue
        if flags and "multicast" not in flags:
            continue

        for info in addr_list:
            if info.family != socket.AF_INET:
                continue
            if info.address.startswith("127."):
                continue
            addresses.append(info.address)

    return addresses


class Receiver:
    """
    Receives E1.31 packets on unicast, broadcast and multicast.

    All three arrive on the same socket once group membership is in
    place. Reading happens on a dedicated thread; consumers drain
    `packets` (or iterate `iter_packets`) from their own thread.
    """

    def __init__(
        self,
        config: Optional[ReceiverConfig] = None,
        interfaces: Callable[[], list[str]] = multicast_interfaces,
    ):
        self.config = config or ReceiverConfig()
        self._interfaces = interfaces

        self._packets: queue.Queue[Packet] = queue.Queue(maxsize=self.config.queue_size)

        self._lock = threading.Lock()
        self._started = False
        self._stop_event = threading.Event()
        self._closed = threading.Event()
        self._closed.set()
        self._thread: Optional[threading.Thread] = None
        self._socket: Optional[socket.socket] = None
        self._joined: set[tuple[str, str]] = set()

        # Stats
        self._received = 0
        self._dropped = 0
        self._read_errors = 0

    @property
    def packets(self) -> queue.Queue[Packet]:
        """Bounded queue of decoded packets."""
        return self._packets

    @property
    def closed(self) -> bool:
        """True once the read loop has exited and no more packets will be queued."""
        return self._closed.is_set()

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """Bound (host, port) of the socket, or None when not started."""
        sock = self._socket
        if sock is None:
            return None
        return sock.getsockname()

    def start(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Open the socket, join multicast groups and start the read thread.

        `stop_event` is an optional external cancellation signal; setting
        it stops the read loop within one read timeout. Raises
        ReceiverAlreadyStartedError on a second call and ReceiverBindError
        if the socket cannot be opened.
        """
        with self._lock:
            if self._started:
                raise ReceiverAlreadyStartedError()
            self._started = True

        if stop_event is not None:
            self._stop_event = stop_event

        try:
            self._socket = self._open_socket()
        except OSError as e:
            with self._lock:
                self._started = False
            raise ReceiverBindError(self.config.bind_address, self.config.port, str(e)) from e

        logger.info(
            "Starting sACN receiver",
            address=self.config.bind_address or "0.0.0.0",
            port=self.address[1] if self.address else self.config.port,
        )

        self._join_default_groups()

        self._closed.clear()
        self._thread = threading.Thread(
            target=self._read_loop,
            name="sACN-Receive",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the read loop and release the socket."""
        self._stop_event.set()

        sock = self._socket
        if sock is not None:
            # The read timeout bounds the wait where close does not unblock recvfrom.
            sock.close()

        if self._thread:
            self._thread.join(timeout=self.config.read_timeout_s * 2 + 1.0)
            self._thread = None

        self._socket = None
        with self._lock:
            self._joined.clear()
        self._closed.set()

        logger.info(
            "sACN receiver stopped",
            received=self._received,
            dropped=self._dropped,
            read_errors=self._read_errors,
        )

    def _open_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            if self.config.reuse_address:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.settimeout(self.config.read_timeout_s)
            sock.bind((self.config.bind_address, self.config.port))
        except OSError:
            sock.close()
            raise
        return sock

    def _join_default_groups(self) -> None:
        interfaces = self._interfaces()
        joined = 0
        attempted = 0

        for universe in range(self.config.universe_start, self.config.universe_end + 1):
            attempted += len(interfaces)
            joined += self._join(universe, interfaces)

        logger.info(
            "Joined sACN multicast groups",
            universes=f"{self.config.universe_start}-{self.config.universe_end}",
            interfaces=len(interfaces),
            joined=joined,
            failed=attempted - joined,
        )

    def _join(self, universe: int, interfaces: list[str]) -> int:
        sock = self._socket
        if sock is None:
            return 0

        group = multicast_address_for_universe(universe)
        joined = 0
        with self._lock:
            for interface in interfaces:
                key = (group, interface)
                if key in self._joined:
                    continue
                mreq = socket.inet_aton(group) + socket.inet_aton(interface)
                try:
                    sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
                except OSError:
                    # Interfaces differ in multicast capability.
                    continue
                self._joined.add(key)
                joined += 1
        return joined

    def join_universe(self, universe: int) -> int:
        """
        Join one universe's multicast group on every eligible interface.

        Returns the number of new memberships. Universes outside the
        default range are still received over unicast and broadcast
        without this call.
        """
        joined = self._join(universe, self._interfaces())
        if joined:
            logger.debug("Joined multicast group", universe=universe, interfaces=joined)
        return joined

    def _read_loop(self) -> None:
        """Blocking read loop; runs until stopped."""
        sock = self._socket
        buffer_size = self.config.buffer_size

        try:
            while sock is not None and not self._stop_event.is_set():
                try:
                    data, addr = sock.recvfrom(buffer_size)
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._stop_event.is_set():
                        break
                    self._read_errors += 1
                    if self._read_errors % 100 == 1:
                        logger.debug("sACN read error", error=str(e), count=self._read_errors)
                    continue

                try:
                    packet = decode_packet(data, source_addr=addr)
                except DecodeError:
                    # Foreign or malformed traffic on a shared port.
                    continue

                self._offer(packet)
        finally:
            if sock is not None:
                sock.close()
            self._closed.set()

    def _offer(self, packet: Packet) -> bool:
        """Queue a packet without blocking; drops it if the queue is full."""
        try:
            self._packets.put_nowait(packet)
        except queue.Full:
            self._dropped += 1
            return False
        self._received += 1
        return True

    def iter_packets(self, poll_interval: float = 0.1) -> Iterator[Packet]:
        """
        Yield packets in arrival order until the receiver is closed and drained.
        """
        while True:
            try:
                yield self._packets.get(timeout=poll_interval)
            except queue.Empty:
                if self.closed and self._packets.empty():
                    return

    def stats(self) -> dict:
        """Get receiver statistics."""
        with self._lock:
            joined_groups = len(self._joined)
        return {
            "running": self._started and not self.closed,
            "received": self._received,
            "dropped": self._dropped,
            "read_errors": self._read_errors,
            "joined_groups": joined_groups,
        }
