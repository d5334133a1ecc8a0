"""
Custom Exceptions for sACN Monitor.

Provides a hierarchy of exceptions for the codec, receiver and
configuration layers. Only startup failures are expected to reach
the caller; decode errors are absorbed by the receiver loop.
"""

from __future__ import annotations

from typing import Optional


class SacnMonitorError(Exception):
    """Base exception for all sACN Monitor errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


# =============================================================================
# Decode Errors
# =============================================================================


class DecodeError(SacnMonitorError):
    """Base exception for E1.31 wire-format validation failures."""

    def __init__(self, message: str, offset: int = 0):
        super().__init__(message, recoverable=True)
        self.offset = offset


class TooShortError(DecodeError):
    """Datagram is shorter than the fixed E1.31 header."""

    def __init__(self, length: int, required: int):
        super().__init__(f"packet too short: {length} < {required} bytes", offset=0)
        self.length = length
        self.required = required


class InvalidPreambleError(DecodeError):
    """Preamble size field is not 0x0010."""

    def __init__(self, value: int):
        super().__init__(f"invalid preamble size: 0x{value:04x}", offset=0)
        self.value = value


class InvalidIdentifierError(DecodeError):
    """ACN packet identifier does not match."""

    def __init__(self, value: bytes):
        super().__init__(f"invalid ACN packet identifier: {value.hex()}", offset=4)
        self.value = value


class InvalidRootVectorError(DecodeError):
    """Root layer vector is not VECTOR_ROOT_E131_DATA."""

    def __init__(self, value: int):
        super().__init__(f"invalid root vector: 0x{value:08x}", offset=18)
        self.value = value


class InvalidFramingVectorError(DecodeError):
    """Framing layer vector is not VECTOR_E131_DATA_PACKET."""

    def __init__(self, value: int):
        super().__init__(f"invalid framing vector: 0x{value:08x}", offset=40)
        self.value = value


class InvalidDMPVectorError(DecodeError):
    """DMP layer vector is not VECTOR_DMP_SET_PROPERTY."""

    def __init__(self, value: int):
        super().__init__(f"invalid DMP vector: 0x{value:02x}", offset=117)
        self.value = value


# =============================================================================
# Receiver Errors
# =============================================================================


class ReceiverError(SacnMonitorError):
    """Base exception for receiver lifecycle errors."""
    pass


class ReceiverBindError(ReceiverError):
    """Failed to open or bind the UDP socket."""

    def __init__(self, address: str, port: int, reason: str):
        where = address or "0.0.0.0"
        super().__init__(
            f"Failed to listen on {where}:{port}: {reason}",
            recoverable=False,
        )
        self.address = address
        self.port = port
        self.reason = reason


class ReceiverAlreadyStartedError(ReceiverError):
    """start() was called on a receiver that is already running."""

    def __init__(self) -> None:
        super().__init__("receiver already started", recoverable=True)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(SacnMonitorError):
    """Invalid or unreadable configuration."""

    def __init__(self, reason: str, path: Optional[str] = None):
        prefix = f"Config error in '{path}'" if path else "Config error"
        super().__init__(f"{prefix}: {reason}", recoverable=False)
        self.path = path
