# pjonbus

`pjonbus` implements a multi-master device bus protocol: up to 254 devices
share one wire, exchanging small packets protected by a CRC-8 and, on
request, a synchronous acknowledge.

The package is made of four modules:

- `pjonbus.timing` – bit timings for each supported board and speed mode
  (`SpeedMode`, `Board`, `Timing`, `timing_for`). `timing_for` raises
  `ValueError` for a board and mode pair that has no timing.
- `pjonbus.bitbang` – the software bit-bang strategy (`SoftwareBitBang`):
  each byte is preceded by a long high pad bit and a low bit, then sent
  least significant bit first. Pins and time are reached through an object
  you provide that follows the `PinIO` protocol (`set_input`, `set_output`,
  `pull_down`, `read`, `write`, `micros`, `delay_micros`).
- `pjonbus.protocol` – protocol symbols (`ACK`, `NAK`, `BUSY`, `FAIL`, ...),
  header bits, error codes, CRC-8 and packet parsing (`Header`, `Mode`,
  `ErrorCode`, `PacketInfo`, `compute_crc8`, `crc8`, `parse_packet_info`,
  `payload_offset`), and the exceptions `PJONError`,
  `ContentTooLongError` and `PacketsBufferFullError`.
- `pjonbus.bus` – the packet manager (`Bus`, `OutgoingPacket`): a send
  buffer with retries, repeated sending, replies, reception and id
  acquisition.

## Installing

```
pip install .
```

## Packet layout

```
| ID | LENGTH | HEADER | [BUS IDS] [SENDER ID] | CONTENT | CRC |
```

`LENGTH` counts the whole packet, CRC included. The header byte carries
three bits: `Header.SHARED` (shared bus, receiver bus id included, plus the
sender bus id when sender info is on), `Header.SENDER_INFO` (sender id
included) and `Header.ACK_REQUEST` (synchronous acknowledge requested).

```python
from pjonbus.protocol import Header, crc8, parse_packet_info, payload_offset

packet = bytes([12, 6, Header.SENDER_INFO | Header.ACK_REQUEST, 11, 64])
packet += bytes([crc8(packet)])

assert crc8(packet) == 0          # a valid packet checks to zero
info = parse_packet_info(packet)  # receiver_id 12, sender_id 11
start = payload_offset(info.header)
assert packet[start:-1] == b"@"
```

`parse_packet_info` raises `ValueError` when the packet is shorter than its
header announces.

## Using a bus

A `Bus` needs a strategy (such as `SoftwareBitBang`) and a clock with
`micros()` and `delay_micros(duration)`:

```python
from pjonbus.bitbang import SoftwareBitBang
from pjonbus.bus import Bus
from pjonbus.timing import Board, timing_for

strategy = SoftwareBitBang(io, 12, 12, timing_for(Board.ATMEGA328))
bus = Bus(44, strategy, io)
bus.begin()               # random startup delay of up to one second
bus.send(12, b"HI!")      # queue a packet for device 12
while bus.update():       # transmit, retry and clean up the buffer
    pass
```

Configuration lives in plain attributes: `acknowledge`, `auto_delete`,
`shared`, `sender_info`, `mode` (`Mode.SIMPLEX` or `Mode.HALF_DUPLEX`) and
`router`. A bus created with a bus id other than `0.0.0.0` is shared; a
strategy with an unassigned pin (255) puts the bus in simplex mode.

- `send_repeatedly(device_id, content, timing)` queues a packet sent again
  every `timing` microseconds until `remove(index)` is called.
- `reply(content)` queues a packet for the sender of the last received
  packet, or returns `None` if it carried no sender.
- `receive(duration)` keeps trying to receive for `duration` microseconds;
  every correct packet is passed to `bus.receiver(payload, info)`.
- `get_packets_count(device_id)` and `remove_all_packets(device_id)` work on
  the whole buffer when `device_id` is 0.
- `acquire_id()` scans ids 1–254 for one nobody answers to and takes it.

Errors are raised: `ContentTooLongError` when a packet does not fit,
`PacketsBufferFullError` when all ten buffer slots are taken, and
`PJONError` with `ErrorCode.ID_ACQUISITION_FAIL` when no id was acquired.
A packet that is still undelivered after the maximum number of attempts is
reported to `bus.error_handler(ErrorCode.CONNECTION_LOST, device_id)`.

## What this package does not do

It does not drive any pins itself and has no command-line tool: reading and
writing the wire, and keeping time, are left to the `PinIO` object and clock
you supply.

## Running the tests

```
pip install .[test]
pytest
```