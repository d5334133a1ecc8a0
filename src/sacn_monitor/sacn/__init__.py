"""E1.31 wire codec and UDP receiver."""

from sacn_monitor.sacn.packet import (
    E131_HEADER_SIZE,
    E131_MAX_CHANNELS,
    E131_PORT,
    Packet,
    build_data_packet,
    decode_packet,
    multicast_address_for_universe,
)
from sacn_monitor.sacn.receiver import Receiver, multicast_interfaces

__all__ = [
    "E131_HEADER_SIZE",
    "E131_MAX_CHANNELS",
    "E131_PORT",
    "Packet",
    "Receiver",
    "build_data_packet",
    "decode_packet",
    "multicast_address_for_universe",
    "multicast_interfaces",
]
