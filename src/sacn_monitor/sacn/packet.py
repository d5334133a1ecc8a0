"""E1.31 (sACN) data packet codec."""

from __future__ import annotations

import struct
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple

from sacn_monitor.core.exceptions import (
    InvalidDMPVectorError,
    InvalidFramingVectorError,
    InvalidIdentifierError,
    InvalidPreambleError,
    InvalidRootVectorError,
    TooShortError,
)

E131_PORT = 5568
E131_HEADER_SIZE = 126
E131_MAX_CHANNELS = 512
E131_PREAMBLE_SIZE = 0x0010
ACN_PACKET_IDENTIFIER = b"ASC-E1.17\x00\x00\x00"
VECTOR_ROOT_E131_DATA = 0x00000004
VECTOR_E131_DATA_PACKET = 0x00000002
VECTOR_DMP_SET_PROPERTY = 0x02
DMP_ADDRESS_DATA_TYPE = 0xA1
SOURCE_NAME_LENGTH = 64
DEFAULT_PRIORITY = 100

# Flags nibble for every PDU flags+length field.
_PDU_FLAGS = 0x7000

_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")


@dataclass(frozen=True)
class Packet:
    """A decoded E1.31 data packet."""

    cid: bytes
    source_name: str
    priority: int
    sequence: int
    universe: int
    start_code: int
    channel_data: bytes
    received_at: float = field(default_factory=time.time)
    source_addr: Optional[Tuple[str, int]] = None

    @property
    def channel_count(self) -> int:
        return len(self.channel_data)

    @property
    def cid_str(self) -> str:
        """CID in canonical UUID text form."""
        return str(uuid.UUID(bytes=self.cid))


def multicast_address_for_universe(universe: int) -> str:
    """Return the sACN multicast group 239.255.<high>.<low> for a universe."""
    return f"239.255.{(universe >> 8) & 0xFF}.{universe & 0xFF}"


def _decode_source_name(raw: bytes) -> str:
    terminator = raw.find(b"\x00")
    if terminator != -1:
        raw = raw[:terminator]
    return raw.decode("utf-8", errors="replace")


def decode_packet(
    data: bytes,
    received_at: Optional[float] = None,
    source_addr: Optional[Tuple[str, int]] = None,
) -> Packet:
    """
    Validate and decode one E1.31 data packet.

    Checks run in a fixed order and raise the matching DecodeError
    subclass on the first failure. Declared PDU lengths are not
    cross-checked: any buffer of at least the header size is accepted
    and channel data is taken from whatever follows the header, capped
    at 512 slots.
    """
    if len(data) < E131_HEADER_SIZE:
        raise TooShortError(len(data), E131_HEADER_SIZE)

    preamble = _U16.unpack_from(data, 0)[0]
    if preamble != E131_PREAMBLE_SIZE:
        raise InvalidPreambleError(preamble)

    identifier = bytes(data[4:16])
    if identifier != ACN_PACKET_IDENTIFIER:
        raise InvalidIdentifierError(identifier)

    root_vector = _U32.unpack_from(data, 18)[0]
    if root_vector != VECTOR_ROOT_E131_DATA:
        raise InvalidRootVectorError(root_vector)

    framing_vector = _U32.unpack_from(data, 40)[0]
    if framing_vector != VECTOR_E131_DATA_PACKET:
        raise InvalidFramingVectorError(framing_vector)

    if data[117] != VECTOR_DMP_SET_PROPERTY:
        raise InvalidDMPVectorError(data[117])

    end = E131_HEADER_SIZE + min(len(data) - E131_HEADER_SIZE, E131_MAX_CHANNELS)

    return Packet(
        cid=bytes(data[22:38]),
        source_name=_decode_source_name(bytes(data[44:108])),
        priority=data[108],
        sequence=data[111],
        universe=_U16.unpack_from(data, 113)[0],
        start_code=data[125],
        channel_data=bytes(data[E131_HEADER_SIZE:end]),
        received_at=time.time() if received_at is None else received_at,
        source_addr=source_addr,
    )


def build_data_packet(
    universe: int,
    channel_data: bytes,
    sequence: int = 0,
    source_name: str = "",
    cid: bytes = bytes(16),
    priority: int = DEFAULT_PRIORITY,
    start_code: int = 0x00,
) -> bytes:
    """
    Build an E1.31 data packet.

    Expects up to 512 slots of channel data without the start code.
    """
    if len(channel_data) > E131_MAX_CHANNELS:
        raise ValueError(f"E1.31 payload too large: {len(channel_data)} bytes")
    if len(cid) != 16:
        raise ValueError(f"CID must be 16 bytes, got {len(cid)}")

    name = source_name.encode("utf-8")[: SOURCE_NAME_LENGTH - 1]
    size = E131_HEADER_SIZE + len(channel_data)

    packet = bytearray()
    # Root layer
    packet.extend(_U16.pack(E131_PREAMBLE_SIZE))
    packet.extend(_U16.pack(0x0000))  # post-amble size
    packet.extend(ACN_PACKET_IDENTIFIER)
    packet.extend(_U16.pack(_PDU_FLAGS | (size - 16)))
    packet.extend(_U32.pack(VECTOR_ROOT_E131_DATA))
    packet.extend(cid)
    # Framing layer
    packet.extend(_U16.pack(_PDU_FLAGS | (size - 38)))
    packet.extend(_U32.pack(VECTOR_E131_DATA_PACKET))
    packet.extend(name.ljust(SOURCE_NAME_LENGTH, b"\x00"))
    packet.append(priority & 0xFF)
    packet.extend(_U16.pack(0))  # sync address
    packet.append(sequence & 0xFF)
    packet.append(0)  # options
    packet.extend(_U16.pack(universe & 0xFFFF))
    # DMP layer
    packet.extend(_U16.pack(_PDU_FLAGS | (size - 115)))
    packet.append(VECTOR_DMP_SET_PROPERTY)
    packet.append(DMP_ADDRESS_DATA_TYPE)
    packet.extend(_U16.pack(0))  # first property address
    packet.extend(_U16.pack(1))  # address increment
    packet.extend(_U16.pack(len(channel_data) + 1))
    packet.append(start_code & 0xFF)
    packet.extend(channel_data)
    return bytes(packet)
