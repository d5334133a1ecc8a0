from __future__ import annotations

import socket
import time

from sacn_monitor.core.config import MonitorConfig, ReceiverConfig, Settings
from sacn_monitor.monitor import SacnMonitor
from sacn_monitor.sacn.packet import build_data_packet, decode_packet
from sacn_monitor.sacn.receiver import Receiver
from sacn_monitor.stats.tracker import StatsTracker
from sacn_monitor.universe.manager import UniverseManager

CID_A = bytes([0xAA] * 16)
CID_B = bytes([0xBB] * 16)


def _monitor(clock, settings: Settings | None = None) -> SacnMonitor:
    settings = settings or Settings()
    return SacnMonitor(
        settings,
        receiver=Receiver(settings.receiver, interfaces=lambda: []),
        universes=UniverseManager(clock=clock),
        tracker=StatsTracker(settings.stats, clock=clock),
    )


def _packet(universe: int, sequence: int, channels: bytes, name: str = "desk", cid: bytes = CID_A):
    return decode_packet(
        build_data_packet(
            universe=universe,
            channel_data=channels,
            sequence=sequence,
            source_name=name,
            cid=cid,
        )
    )


def test_process_feeds_universe_state_and_statistics(clock) -> None:
    monitor = _monitor(clock)

    monitor.process(_packet(3, 0, bytes([10, 20, 30])))
    monitor.process(_packet(3, 5, bytes([40])))

    info = monitor.universe(3)
    assert info.packet_count == 2
    assert info.last_sequence == 5
    assert monitor.active_channel_count(3) == 3
    assert [c.value for c in monitor.channels(3)[:3]] == [40, 20, 30]

    summary = monitor.universe_summary(3)
    assert summary.packet_count == 2
    assert summary.lost_packets == 4
    assert summary.loss_percentage == 4 / 6 * 100
    assert summary.packet_rate == 2.0
    assert summary.source_count == 1
    assert summary.active_channels == 3


def test_multiple_sources_listed_but_latest_values_applied(clock) -> None:
    monitor = _monitor(clock)

    monitor.process(_packet(1, 0, bytes([100, 100]), name="main", cid=CID_A))
    monitor.process(_packet(1, 0, bytes([5]), name="backup", cid=CID_B))

    assert [s.name for s in monitor.sources(1)] == ["main", "backup"]
    assert monitor.universe(1).source_name == "backup"
    assert [c.value for c in monitor.channels(1)[:2]] == [5, 100]


def test_list_universes_sorted_and_copied(clock) -> None:
    monitor = _monitor(clock)
    for universe in (20, 2, 11):
        monitor.process(_packet(universe, 0, bytes([1])))

    listing = monitor.list_universes()
    assert [u.id for u in listing] == [2, 11, 20]

    listing.clear()
    assert len(monitor.list_universes()) == 3


def test_unknown_universe_queries(clock) -> None:
    monitor = _monitor(clock)

    assert monitor.universe(99) is None
    assert monitor.channels(99) == []
    assert monitor.active_channel_count(99) == 0
    assert monitor.universe_summary(99) is None
    assert monitor.sources(99) == []


def test_active_universes_and_prune(clock) -> None:
    monitor = _monitor(clock, Settings(monitor=MonitorConfig(stale_timeout_s=2.0)))
    monitor.process(_packet(1, 0, bytes([1])))
    clock.advance(5.0)
    monitor.process(_packet(2, 0, bytes([1])))

    assert [u.id for u in monitor.active_universes()] == [2]

    assert monitor.prune_stale(2.0) == 1
    assert monitor.universe(1) is None
    assert monitor.tracker.universe_stats(1) is None
    assert monitor.universe(2) is not None


def test_reset_stats(clock) -> None:
    monitor = _monitor(clock)
    monitor.process(_packet(1, 0, bytes([1])))
    monitor.process(_packet(1, 9, bytes([1])))

    monitor.reset_stats(1)
    assert monitor.universe_summary(1).lost_packets == 0
    assert monitor.sources(1)[0].name == "desk"
    assert monitor.universe(1).packet_count == 2, "Universe state is not statistics"

    monitor.reset_stats()
    assert monitor.tracker.universe_ids() == []


def test_monitor_ingests_from_socket() -> None:
    settings = Settings(
        receiver=ReceiverConfig(bind_address="127.0.0.1", port=0, read_timeout_s=0.05),
    )
    monitor = SacnMonitor(settings, receiver=Receiver(settings.receiver, interfaces=lambda: []))
    monitor.start()
    try:
        host, port = monitor.receiver.address
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
            for sequence in range(3):
                sender.sendto(
                    build_data_packet(universe=4, channel_data=bytes([sequence]), sequence=sequence),
                    (host, port),
                )

        deadline = time.monotonic() + 2.0
        while time.monotonic() < deadline:
            info = monitor.universe(4)
            if info is not None and info.packet_count == 3:
                break
            time.sleep(0.01)
    finally:
        monitor.stop()

    assert monitor.universe(4).packet_count == 3
    assert monitor.universe_summary(4).lost_packets == 0
    assert monitor.receiver.closed


def test_periodic_prune_runs_without_traffic(clock) -> None:
    settings = Settings(
        receiver=ReceiverConfig(bind_address="127.0.0.1", port=0, read_timeout_s=0.05),
        monitor=MonitorConfig(stale_timeout_s=2.0, prune_interval_s=0.05),
    )
    monitor = _monitor(clock, settings)
    monitor.process(_packet(1, 0, bytes([1])))
    clock.advance(5.0)

    monitor.start()
    try:
        deadline = time.monotonic() + 2.0
        while monitor.universe(1) is not None and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        monitor.stop()

    assert monitor.universe(1) is None
    assert monitor.tracker.universe_stats(1) is None
