"""Bit timing table for the software bit-bang strategy, per board and speed mode."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SpeedMode(Enum):
    """Transmission speed mode."""

    STANDARD = 0
    FAST = 1
    OVERDRIVE = 2


class Board(Enum):
    """Supported board families, each at its nominal clock frequency."""

    ATMEGA328 = "atmega88/168/328 @ 16 MHz"
    ATMEGA32U4 = "atmega16u4/32u4"
    ATMEGA2560 = "atmega1280/2560"
    ATTINY85 = "attiny45/85 @ 8 MHz"
    SAMD_ZERO = "samd zero"
    ESP8266 = "esp8266 @ 80 MHz"
    TEENSY31 = "mk20dx256 @ 96 MHz"


@dataclass(frozen=True)
class Timing:
    """Durations in microseconds used to frame and sample bits on the wire."""

    bit_width: int
    bit_spacer: int
    acceptance: int
    read_delay: int


_TABLE: dict[tuple[Board, SpeedMode], Timing] = {
    (Board.ATMEGA328, SpeedMode.STANDARD): Timing(40, 112, 40, 5),
    (Board.ATMEGA328, SpeedMode.FAST): Timing(28, 66, 28, 4),
    (Board.ATMEGA328, SpeedMode.OVERDRIVE): Timing(20, 56, 20, 8),
    (Board.ATMEGA32U4, SpeedMode.STANDARD): Timing(40, 112, 40, 8),
    (Board.ATMEGA32U4, SpeedMode.FAST): Timing(28, 66, 28, 14),
    (Board.ATMEGA2560, SpeedMode.STANDARD): Timing(38, 110, 38, 11),
    (Board.ATMEGA2560, SpeedMode.FAST): Timing(26, 64, 26, 12),
    (Board.ATMEGA2560, SpeedMode.OVERDRIVE): Timing(26, 64, 26, 12),
    (Board.ATTINY85, SpeedMode.STANDARD): Timing(34, 114, 34, 10),
    (Board.SAMD_ZERO, SpeedMode.STANDARD): Timing(40, 112, 40, 4),
    (Board.SAMD_ZERO, SpeedMode.OVERDRIVE): Timing(12, 36, 12, 1),
    (Board.ESP8266, SpeedMode.STANDARD): Timing(44, 110, 35, 4),
}

# The Teensy entry is selected regardless of the configured speed mode.
_TEENSY = Timing(46, 112, 40, -10)


def timing_for(board: Board, mode: SpeedMode = SpeedMode.STANDARD) -> Timing:
    """Return the timing for a board in a speed mode.

    Raises ValueError when the board has no timing for that mode.
    """
    if board is Board.TEENSY31:
        return _TEENSY
    try:
        return _TABLE[(board, mode)]
    except KeyError:
        raise ValueError(f"no timing defined for {board.name} in {mode.name} mode") from None