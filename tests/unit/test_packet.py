from __future__ import annotations

import uuid

import pytest

from sacn_monitor.core.exceptions import (
    DecodeError,
    InvalidDMPVectorError,
    InvalidFramingVectorError,
    InvalidIdentifierError,
    InvalidPreambleError,
    InvalidRootVectorError,
    TooShortError,
)
from sacn_monitor.sacn.packet import (
    ACN_PACKET_IDENTIFIER,
    E131_HEADER_SIZE,
    E131_MAX_CHANNELS,
    build_data_packet,
    decode_packet,
    multicast_address_for_universe,
)

CID = bytes([0x12, 0x34, 0x56, 0x78, 0x9A, 0xBC, 0xDE, 0xF0] * 2)


def _packet(channels: bytes = b"\x00", **kwargs) -> bytearray:
    kwargs.setdefault("universe", 1)
    kwargs.setdefault("sequence", 1)
    kwargs.setdefault("source_name", "test")
    kwargs.setdefault("cid", CID)
    return bytearray(build_data_packet(channel_data=channels, **kwargs))


def test_build_data_packet_layout() -> None:
    packet = build_data_packet(
        universe=0x0123,
        channel_data=bytes([7] * 4),
        sequence=5,
        source_name="desk",
        cid=CID,
        priority=150,
    )

    assert len(packet) == E131_HEADER_SIZE + 4
    assert packet[0:2] == b"\x00\x10"  # preamble size
    assert packet[2:4] == b"\x00\x00"  # post-amble size
    assert packet[4:16] == ACN_PACKET_IDENTIFIER
    assert packet[16:18] == bytes([0x70, len(packet) - 16])
    assert packet[18:22] == b"\x00\x00\x00\x04"
    assert packet[22:38] == CID
    assert packet[38:40] == bytes([0x70, len(packet) - 38])
    assert packet[40:44] == b"\x00\x00\x00\x02"
    assert packet[44:48] == b"desk"
    assert packet[48] == 0
    assert packet[108] == 150
    assert packet[111] == 5
    assert packet[113:115] == b"\x01\x23"
    assert packet[115:117] == bytes([0x70, len(packet) - 115])
    assert packet[117] == 0x02
    assert packet[118] == 0xA1
    assert packet[121:123] == b"\x00\x01"  # address increment
    assert packet[123:125] == b"\x00\x05"  # start code + 4 slots
    assert packet[125] == 0x00
    assert packet[126:] == bytes([7] * 4)


def test_build_data_packet_rejects_oversized_payload() -> None:
    with pytest.raises(ValueError):
        build_data_packet(universe=1, channel_data=bytes(E131_MAX_CHANNELS + 1))


def test_decode_valid_packet() -> None:
    channels = bytes([255, 128, 64, 0, 100, 200])
    packet = decode_packet(
        bytes(_packet(channels, universe=1, sequence=42, source_name="test-source")),
        received_at=12.5,
        source_addr=("10.0.0.5", 5568),
    )

    assert packet.universe == 1
    assert packet.sequence == 42
    assert packet.source_name == "test-source"
    assert packet.priority == 100
    assert packet.start_code == 0
    assert packet.channel_data == channels
    assert packet.channel_count == len(channels)
    assert packet.cid == CID
    assert packet.received_at == 12.5
    assert packet.source_addr == ("10.0.0.5", 5568)


def test_decode_round_trip_fields() -> None:
    channels = bytes(range(200))
    packet = decode_packet(
        build_data_packet(universe=63999, channel_data=channels, sequence=255, source_name="Console A")
    )

    assert (packet.universe, packet.sequence, packet.source_name, packet.channel_data) == (
        63999,
        255,
        "Console A",
        channels,
    )


def test_decode_full_universe() -> None:
    channels = bytes(i % 256 for i in range(E131_MAX_CHANNELS))
    packet = decode_packet(bytes(_packet(channels)))
    assert packet.channel_count == E131_MAX_CHANNELS


def test_decode_clamps_channel_data_to_512() -> None:
    data = bytes(_packet(bytes(E131_MAX_CHANNELS))) + b"\xff" * 40
    packet = decode_packet(data)

    assert packet.channel_count == E131_MAX_CHANNELS
    assert packet.channel_data == bytes(E131_MAX_CHANNELS)


def test_decode_header_only_packet_has_empty_channel_data() -> None:
    packet = decode_packet(bytes(_packet(b"")))
    assert packet.channel_data == b""


@pytest.mark.parametrize("length", [0, 1, 50, E131_HEADER_SIZE - 1])
def test_decode_too_short_regardless_of_content(length: int) -> None:
    data = bytes(_packet())[:length]
    with pytest.raises(TooShortError):
        decode_packet(data)


@pytest.mark.parametrize(
    ("offset", "error"),
    [
        (0, InvalidPreambleError),
        (4, InvalidIdentifierError),
        (21, InvalidRootVectorError),
        (43, InvalidFramingVectorError),
        (117, InvalidDMPVectorError),
    ],
)
def test_decode_rejects_corrupt_field(offset: int, error: type[DecodeError]) -> None:
    data = _packet()
    data[offset] = 0xFF

    with pytest.raises(error) as excinfo:
        decode_packet(bytes(data))

    assert isinstance(excinfo.value, DecodeError)


def test_decode_reports_first_failing_check() -> None:
    data = _packet()
    data[21] = 0xFF  # root vector
    data[117] = 0xFF  # DMP vector

    with pytest.raises(InvalidRootVectorError):
        decode_packet(bytes(data))


def test_decode_ignores_declared_lengths() -> None:
    data = _packet(bytes([1, 2, 3]))
    data[16:18] = b"\x70\x00"
    data[123:125] = b"\x02\x00"

    packet = decode_packet(bytes(data))
    assert packet.channel_data == bytes([1, 2, 3])


def test_source_name_without_terminator_uses_all_64_bytes() -> None:
    data = _packet()
    data[44:108] = b"N" * 64

    packet = decode_packet(bytes(data))
    assert packet.source_name == "N" * 64


def test_source_name_with_leading_terminator_is_empty() -> None:
    data = _packet(source_name="")
    data[45:50] = b"ghost"

    packet = decode_packet(bytes(data))
    assert packet.source_name == ""


def test_decode_is_idempotent() -> None:
    data = bytes(_packet(bytes([9, 8, 7])))
    first = decode_packet(data, received_at=1.0)
    second = decode_packet(data, received_at=1.0)
    assert first == second


def test_cid_str_is_uuid_text() -> None:
    packet = decode_packet(bytes(_packet()))
    assert packet.cid_str == str(uuid.UUID(bytes=CID))


@pytest.mark.parametrize(
    ("universe", "address"),
    [
        (1, "239.255.0.1"),
        (63, "239.255.0.63"),
        (256, "239.255.1.0"),
        (63999, "239.255.249.255"),
    ],
)
def test_multicast_address_for_universe(universe: int, address: str) -> None:
    assert multicast_address_for_universe(universe) == address
