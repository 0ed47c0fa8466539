"""One-wire, interrupt-free software bit-bang transport."""

from __future__ import annotations

from typing import Optional, Protocol

from .timing import Timing

NOT_ASSIGNED = 255


class PinIO(Protocol):
    """Access to digital pins and a microsecond clock."""

    def set_input(self, pin: int) -> None: ...

    def set_output(self, pin: int) -> None: ...

    def pull_down(self, pin: int) -> None: ...

    def read(self, pin: int) -> int: ...

    def write(self, pin: int, value: int) -> None: ...

    def micros(self) -> int: ...

    def delay_micros(self, duration: int) -> None: ...


class SoftwareBitBang:
    """Frames, sends and samples bytes over one or two digital pins.

    Every byte is preceded by a long high pad bit followed by a standard
    low bit; the receiver synchronises on the falling edge of the pad.
    """

    def __init__(self, io: PinIO, input_pin: int, output_pin: int, timing: Timing) -> None:
        self.io = io
        self.input_pin = input_pin
        self.output_pin = output_pin
        self.timing = timing

    def _has_separate_output(self) -> bool:
        return self.output_pin != self.input_pin and self.output_pin != NOT_ASSIGNED

    def can_start(self) -> bool:
        """Return True if the line stays low for ten bit widths, then take the output."""
        io = self.io
        io.set_input(self.input_pin)
        for _ in range(9):
            if io.read(self.input_pin):
                return False
            io.delay_micros(self.timing.bit_width)
        if io.read(self.input_pin):
            return False
        io.set_output(self.output_pin)
        return True

    def send_byte(self, value: int) -> None:
        """Transmit the synchronisation pad followed by the byte, least significant bit first."""
        io, pin, width = self.io, self.output_pin, self.timing.bit_width
        io.write(pin, 1)
        io.delay_micros(self.timing.bit_spacer)
        io.write(pin, 0)
        io.delay_micros(width)
        for bit in range(8):
            io.write(pin, (value >> bit) & 1)
            io.delay_micros(width)

    def synchronization_bit(self) -> int:
        """Sample the bit following the pad, shifted by the read delay."""
        io, width = self.io, self.timing.bit_width
        io.delay_micros(width // 2 - self.timing.read_delay)
        value = 1 if io.read(self.input_pin) else 0
        io.delay_micros(width // 2)
        return value

    def read_byte(self) -> int:
        """Sample eight bits at their centres and return the byte."""
        io, width = self.io, self.timing.bit_width
        io.delay_micros(width // 2)
        value = 0
        for bit in range(8):
            if bit:
                io.delay_micros(width)
            if io.read(self.input_pin):
                value |= 1 << bit
        io.delay_micros(width // 2)
        return value

    def receive_byte(self) -> Optional[int]:
        """Receive one byte, or return None if no valid pad was detected."""
        io = self.io
        io.pull_down(self.input_pin)
        if self._has_separate_output():
            io.pull_down(self.output_pin)

        start = io.micros()
        while io.read(self.input_pin) and io.micros() - start <= self.timing.bit_spacer:
            pass
        elapsed = io.micros() - start

        if elapsed >= self.timing.acceptance and not self.synchronization_bit():
            return self.read_byte()
        return None

    def receive_response(self) -> Optional[int]:
        """Wait about one pad plus one bit for a response byte; None if none came."""
        io = self.io
        if self._has_separate_output():
            io.write(self.output_pin, 0)
        window = self.timing.bit_spacer + self.timing.bit_width
        start = io.micros()
        response = None
        while response is None and io.micros() - start <= window:
            response = self.receive_byte()
        return response

    def send_response(self, response: int) -> None:
        """Send a single response byte and release the line."""
        self.io.set_output(self.output_pin)
        self.send_byte(response)
        self.io.pull_down(self.output_pin)