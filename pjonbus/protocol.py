"""Packet format, protocol symbols, header flags, errors and CRC for the bus."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, IntFlag
from functools import reduce
from typing import Iterable

from .bitbang import NOT_ASSIGNED

# Protocol symbols
ACK = 6
NAK = 21
ACQUIRE_ID = 63
BUSY = 666
FAIL = 0x100
TO_BE_SENT = 74

# Reserved addresses
BROADCAST = 0

# Limits
MAX_ATTEMPTS = 125
MAX_PACKETS = 10
PACKET_MAX_LENGTH = 50

# Delays: startup in milliseconds, collision and id scan in microseconds
INITIAL_MAX_DELAY = 1000
COLLISION_MAX_DELAY = 48
MAX_ID_SCAN_TIME = 5_000_000

LOCALHOST = bytes(4)

# Receiver id, length and header precede every packet's content.
BASE_OVERHEAD = 3

__all__ = [
    "ACK",
    "NAK",
    "ACQUIRE_ID",
    "BUSY",
    "FAIL",
    "TO_BE_SENT",
    "BROADCAST",
    "NOT_ASSIGNED",
    "MAX_ATTEMPTS",
    "MAX_PACKETS",
    "PACKET_MAX_LENGTH",
    "INITIAL_MAX_DELAY",
    "COLLISION_MAX_DELAY",
    "MAX_ID_SCAN_TIME",
    "LOCALHOST",
    "Mode",
    "Header",
    "ErrorCode",
    "PacketInfo",
    "PJONError",
    "ContentTooLongError",
    "PacketsBufferFullError",
    "compute_crc8",
    "crc8",
    "parse_packet_info",
    "payload_offset",
]


class Mode(IntEnum):
    """Communication mode."""

    SIMPLEX = 150
    HALF_DUPLEX = 151


class Header(IntFlag):
    """Bits of the packet header byte."""

    NONE = 0
    SHARED = 1
    SENDER_INFO = 2
    ACK_REQUEST = 4


class ErrorCode(IntEnum):
    """Codes passed to the error handler."""

    CONNECTION_LOST = 101
    PACKETS_BUFFER_FULL = 102
    MEMORY_FULL = 103
    CONTENT_TOO_LONG = 104
    ID_ACQUISITION_FAIL = 105


@dataclass
class PacketInfo:
    """Addressing information carried by a received packet."""

    header: Header = Header.NONE
    receiver_id: int = BROADCAST
    receiver_bus_id: bytes = LOCALHOST
    sender_id: int = BROADCAST
    sender_bus_id: bytes = LOCALHOST


class PJONError(Exception):
    """A bus error, carrying its code and the datum reported with it."""

    def __init__(self, code: ErrorCode, data: int = 0, message: str | None = None) -> None:
        self.code = code
        self.data = data
        super().__init__(message or f"{code.name.lower().replace('_', ' ')} ({data})")


class ContentTooLongError(PJONError):
    """The packet with its overhead does not fit the maximum packet length."""

    def __init__(self, length: int) -> None:
        super().__init__(
            ErrorCode.CONTENT_TOO_LONG,
            length,
            f"packet length {length} reaches the maximum of {PACKET_MAX_LENGTH}",
        )


class PacketsBufferFullError(PJONError):
    """Every slot of the outgoing packet buffer is taken."""

    def __init__(self, capacity: int = MAX_PACKETS) -> None:
        super().__init__(
            ErrorCode.PACKETS_BUFFER_FULL,
            capacity,
            f"packet buffer full ({capacity} packets)",
        )


def compute_crc8(value: int, crc: int = 0) -> int:
    """Fold one byte into a Dallas/Maxim CRC-8 (reflected polynomial 0x8C)."""
    value &= 0xFF
    for _ in range(8):
        mix = (crc ^ value) & 0x01
        crc >>= 1
        if mix:
            crc ^= 0x8C
        value >>= 1
    return crc


def crc8(data: Iterable[int]) -> int:
    """Return the CRC-8 of a sequence of bytes, starting from zero."""
    return reduce(lambda crc, byte: compute_crc8(byte, crc), data, 0)


def payload_offset(header: int) -> int:
    """Return where the content starts within a packet with this header."""
    header = Header(header & 0x07)
    shared = Header.SHARED in header
    sender = Header.SENDER_INFO in header
    if shared:
        return BASE_OVERHEAD + (9 if sender else 4)
    return BASE_OVERHEAD + (1 if sender else 0)


def parse_packet_info(packet: bytes) -> PacketInfo:
    """Read the addressing fields of a packet.

    Raises ValueError if the packet is too short for what its header announces.
    """
    packet = bytes(packet)
    if len(packet) < BASE_OVERHEAD:
        raise ValueError("packet is shorter than its fixed header")
    header = Header(packet[2] & 0x07)
    needed = payload_offset(header)
    if len(packet) < needed:
        raise ValueError(f"packet needs at least {needed} bytes for its header, got {len(packet)}")

    info = PacketInfo(header=header, receiver_id=packet[0])
    if Header.SHARED in header:
        info.receiver_bus_id = packet[3:7]
        if Header.SENDER_INFO in header:
            info.sender_bus_id = packet[7:11]
            info.sender_id = packet[11]
    elif Header.SENDER_INFO in header:
        info.sender_id = packet[3]
    return info