"""Packet scheduling, transmission and reception on a multi-master bus."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .protocol import (
    ACK,
    ACQUIRE_ID,
    BASE_OVERHEAD,
    BROADCAST,
    BUSY,
    COLLISION_MAX_DELAY,
    FAIL,
    INITIAL_MAX_DELAY,
    LOCALHOST,
    MAX_ATTEMPTS,
    MAX_ID_SCAN_TIME,
    MAX_PACKETS,
    NAK,
    NOT_ASSIGNED,
    PACKET_MAX_LENGTH,
    TO_BE_SENT,
    ContentTooLongError,
    ErrorCode,
    Header,
    Mode,
    PacketInfo,
    PacketsBufferFullError,
    PJONError,
    compute_crc8,
    parse_packet_info,
    payload_offset,
)

Receiver = Callable[[bytes, PacketInfo], None]
ErrorHandler = Callable[[ErrorCode, int], None]


class _Clock(Protocol):
    def micros(self) -> int: ...

    def delay_micros(self, duration: int) -> None: ...


class _Strategy(Protocol):
    input_pin: int
    output_pin: int

    def can_start(self) -> bool: ...

    def send_byte(self, value: int) -> None: ...

    def receive_byte(self) -> Optional[int]: ...

    def receive_response(self) -> Optional[int]: ...

    def send_response(self, response: int) -> None: ...


def _ignore_packet(payload: bytes, info: PacketInfo) -> None:
    pass


def _ignore_error(code: ErrorCode, data: int) -> None:
    pass


@dataclass
class OutgoingPacket:
    """A packet waiting in the send buffer."""

    device_id: int
    header: Header
    content: bytes
    registration: int
    timing: int = 0
    state: int = TO_BE_SENT
    attempts: int = 0


class Bus:
    """A device on the bus: schedules outgoing packets and receives incoming ones.

    Configuration is held in plain attributes: ``acknowledge``,
    ``auto_delete``, ``shared``, ``sender_info``, ``mode`` and ``router``.
    ``receiver`` is called with the payload and its PacketInfo for every
    correct packet; ``error_handler`` is called with an ErrorCode and a datum
    when a packet is undeliverable.
    """

    def __init__(
        self,
        device_id: int,
        strategy: _Strategy,
        clock: _Clock,
        bus_id: bytes = LOCALHOST,
    ) -> None:
        bus_id = bytes(bus_id)
        if len(bus_id) != 4:
            raise ValueError("a bus id is exactly 4 bytes")
        self.device_id = device_id
        self.strategy = strategy
        self.clock = clock
        self.bus_id = bus_id
        self.acknowledge = True
        self.auto_delete = True
        self.sender_info = True
        self.router = False
        self.shared = bus_id != LOCALHOST
        if NOT_ASSIGNED in (strategy.input_pin, strategy.output_pin):
            self.mode = Mode.SIMPLEX
        else:
            self.mode = Mode.HALF_DUPLEX
        self.receiver: Receiver = _ignore_packet
        self.error_handler: ErrorHandler = _ignore_error
        self.rng: random.Random = random.Random()
        self.packets: list[Optional[OutgoingPacket]] = [None] * MAX_PACKETS
        self.last_packet_info = PacketInfo()

    # -- setup -------------------------------------------------------------

    def begin(self, rng: Optional[random.Random] = None) -> None:
        """Wait a random time of up to a second to avoid startup collisions."""
        if rng is not None:
            self.rng = rng
        self.clock.delay_micros(self.rng.randrange(INITIAL_MAX_DELAY) * 1000)

    # -- sending -----------------------------------------------------------

    def _sender_overhead(self) -> int:
        if self.shared:
            return 9 if self.sender_info else 4
        return 1 if self.sender_info else 0

    def _header(self) -> Header:
        header = Header.NONE
        if self.shared:
            header |= Header.SHARED
        if self.sender_info:
            header |= Header.SENDER_INFO
        if self.acknowledge:
            header |= Header.ACK_REQUEST
        return header

    def dispatch(self, device_id: int, bus_id: bytes, content: bytes, timing: int = 0) -> int:
        """Queue a packet and return its index in the send buffer.

        Raises ContentTooLongError or PacketsBufferFullError.
        """
        content = bytes(content)
        new_length = len(content) + self._sender_overhead()
        if new_length >= PACKET_MAX_LENGTH:
            raise ContentTooLongError(new_length)

        prefix = b""
        if self.shared:
            prefix = bytes(bus_id)
            if self.sender_info:
                prefix += self.bus_id + bytes([self.device_id])
        elif self.sender_info:
            prefix = bytes([self.device_id])

        for index, slot in enumerate(self.packets):
            if slot is None:
                self.packets[index] = OutgoingPacket(
                    device_id=device_id,
                    header=self._header(),
                    content=prefix + content,
                    registration=self.clock.micros(),
                    timing=timing,
                )
                return index
        raise PacketsBufferFullError(MAX_PACKETS)

    def send(self, device_id: int, content: bytes) -> int:
        """Queue a packet to be sent once to a device on this bus."""
        return self.dispatch(device_id, self.bus_id, content, 0)

    def send_repeatedly(self, device_id: int, content: bytes, timing: int) -> int:
        """Queue a packet to be sent every ``timing`` microseconds until removed."""
        return self.dispatch(device_id, self.bus_id, content, timing)

    def reply(self, content: bytes) -> Optional[int]:
        """Queue a packet for the sender of the last received packet.

        Returns None if that packet carried no sender.
        """
        info = self.last_packet_info
        if info.sender_id == BROADCAST:
            return None
        return self.dispatch(info.sender_id, info.sender_bus_id, content, 0)

    def send_string(self, device_id: int, content: bytes, header: int) -> int:
        """Transmit one packet now; return ACK, NAK, BUSY or FAIL."""
        if content is None:
            return FAIL
        content = bytes(content)
        strategy = self.strategy
        if self.mode != Mode.SIMPLEX and not strategy.can_start():
            return BUSY

        length = (len(content) + 4) & 0xFF
        crc = 0
        for value in (device_id, length, int(header), *content):
            strategy.send_byte(value)
            crc = compute_crc8(value, crc)
        strategy.send_byte(crc)

        if not self.acknowledge or device_id == BROADCAST or self.mode == Mode.SIMPLEX:
            return ACK

        response = strategy.receive_response()
        if response == ACK:
            return ACK
        if response is not None:
            self.clock.delay_micros(self.rng.randrange(COLLISION_MAX_DELAY))
        if response == NAK:
            return NAK
        return FAIL

    def _retire(self, index: int, packet: OutgoingPacket) -> bool:
        """Delete or reschedule a finished packet; return True if deleted."""
        if not packet.timing:
            if self.auto_delete:
                self.remove(index)
                return True
            return False
        packet.attempts = 0
        packet.registration = self.clock.micros()
        packet.state = TO_BE_SENT
        return False

    def update(self) -> int:
        """Send what is due in the buffer; return the number of packets left."""
        count = 0
        for index, packet in enumerate(self.packets):
            if packet is None:
                continue
            count += 1

            elapsed = self.clock.micros() - packet.registration
            if elapsed <= packet.timing + packet.attempts ** 3:
                continue
            packet.state = self.send_string(packet.device_id, packet.content, packet.header)

            if packet.state == ACK:
                if self._retire(index, packet):
                    count -= 1
                continue

            if packet.state == FAIL:
                packet.attempts += 1
                if packet.attempts <= MAX_ATTEMPTS:
                    continue
                if packet.content and packet.content[0] == ACQUIRE_ID:
                    self.device_id = packet.device_id
                    self.remove(index)
                    count -= 1
                    continue
                self.error_handler(ErrorCode.CONNECTION_LOST, packet.device_id)
                if self._retire(index, packet):
                    count -= 1
        return count

    # -- buffer management -------------------------------------------------

    def remove(self, index: int) -> None:
        """Drop the packet at a buffer index."""
        self.packets[index] = None

    def _matching(self, device_id: int) -> list[int]:
        return [
            index
            for index, packet in enumerate(self.packets)
            if packet is not None and (not device_id or packet.device_id == device_id)
        ]

    def remove_all_packets(self, device_id: int = 0) -> None:
        """Drop every packet, or only those addressed to ``device_id``."""
        for index in self._matching(device_id):
            self.remove(index)

    def get_packets_count(self, device_id: int = 0) -> int:
        """Count every queued packet, or only those addressed to ``device_id``."""
        return len(self._matching(device_id))

    # -- receiving ---------------------------------------------------------

    def _respond(self, data: list[int], shared: bool, acknowledge_requested: bool, response: int) -> None:
        if not acknowledge_requested or data[0] == BROADCAST or self.mode == Mode.SIMPLEX:
            return
        if not self.shared or (shared and bytes(data[3:7]) == self.bus_id):
            self.strategy.send_response(response)

    def receive_packet(self) -> int:
        """Try to receive one packet; return ACK, NAK, BUSY or FAIL."""
        data: list[int] = []
        packet_length = PACKET_MAX_LENGTH
        crc = 0
        shared = False
        acknowledge_requested = False

        while len(data) < packet_length:
            position = len(data)
            value = self.strategy.receive_byte()
            if value is None:
                return FAIL
            data.append(value)

            if position == 0 and value not in (self.device_id, BROADCAST) and not self.router:
                return BUSY

            if position == 1:
                if 4 < value < PACKET_MAX_LENGTH:
                    packet_length = value
                else:
                    return FAIL

            if position == 2:
                shared = bool(value & Header.SHARED)
                acknowledge_requested = bool(value & Header.ACK_REQUEST)
                if shared != self.shared and not self.router:
                    return BUSY

            if self.shared and shared and not self.router and 3 <= position < 7:
                if self.bus_id[position - 3] != value:
                    return BUSY

            crc = compute_crc8(value, crc)

        if crc:
            self._respond(data, shared, acknowledge_requested, NAK)
            return NAK

        self._respond(data, shared, acknowledge_requested, ACK)
        offset = payload_offset(data[2])
        if packet_length < offset + 1:
            return FAIL
        packet = bytes(data)
        self.last_packet_info = parse_packet_info(packet)
        self.receiver(packet[offset : packet_length - 1], self.last_packet_info)
        return ACK

    def receive(self, duration: int) -> int:
        """Keep trying to receive for ``duration`` microseconds; return the last outcome."""
        response = FAIL
        start = self.clock.micros()
        while self.clock.micros() - start <= duration:
            response = self.receive_packet()
            if response == ACK:
                return ACK
        return response

    # -- addressing --------------------------------------------------------

    def acquire_id(self) -> None:
        """Scan ids for one nobody answers to and take it.

        Raises PJONError with ID_ACQUISITION_FAIL if no id was acquired
        within the scan time.
        """
        start = self.clock.micros()

        def within_time() -> bool:
            return self.clock.micros() - start < MAX_ID_SCAN_TIME

        for candidate in range(1, 255):
            if not within_time():
                break
            index = self.send(candidate, bytes([ACQUIRE_ID]))
            while self.packets[index] is not None and within_time():
                self.update()
            if self.device_id != NOT_ASSIGNED:
                return
        raise PJONError(ErrorCode.ID_ACQUISITION_FAIL, FAIL)