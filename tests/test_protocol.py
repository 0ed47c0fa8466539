import pytest

from pjonbus.protocol import (
    BROADCAST,
    LOCALHOST,
    ContentTooLongError,
    ErrorCode,
    Header,
    PacketsBufferFullError,
    PJONError,
    compute_crc8,
    crc8,
    parse_packet_info,
    payload_offset,
)


def test_crc8_check_value():
    assert crc8(b"123456789") == 0xA1


def test_crc8_of_empty_is_zero():
    assert crc8(b"") == 0


@pytest.mark.parametrize("data", [b"", b"@", b"\x0c\x06\x06\x0b@", bytes(range(40))])
def test_crc_appended_gives_zero(data):
    assert crc8(data + bytes([crc8(data)])) == 0


def test_crc_fold_matches_incremental():
    data = b"HI!"
    crc = 0
    for byte in data:
        crc = compute_crc8(byte, crc)
    assert crc == crc8(data)


def test_compute_crc8_masks_to_byte():
    assert compute_crc8(-1, 0) == compute_crc8(0xFF, 0)


def test_corrupted_frame_detected():
    frame = bytearray(b"\x0c\x06\x06\x0b@")
    frame.append(crc8(frame))
    assert crc8(frame) == 0
    frame[4] ^= 0x01
    corrupted = crc8(frame)
    assert 0 < corrupted <= 0xFF
    frame[4] ^= 0x01
    assert crc8(frame) == 0


def test_payload_offset_local_without_sender():
    assert payload_offset(Header.NONE) == 3


def test_payload_offset_ordering():
    local = payload_offset(Header.NONE)
    local_sender = payload_offset(Header.SENDER_INFO)
    shared = payload_offset(Header.SHARED)
    shared_sender = payload_offset(Header.SHARED | Header.SENDER_INFO)
    assert local < local_sender < shared < shared_sender
    assert shared_sender == 12


def test_payload_offset_ignores_ack_bit():
    assert payload_offset(Header.SENDER_INFO | Header.ACK_REQUEST) == payload_offset(
        Header.SENDER_INFO
    )


def test_parse_local_with_sender():
    packet = bytes([12, 6, Header.SENDER_INFO | Header.ACK_REQUEST, 11, 64])
    info = parse_packet_info(packet)
    assert info.receiver_id == 12
    assert info.sender_id == 11
    assert info.header == Header.SENDER_INFO | Header.ACK_REQUEST
    assert info.receiver_bus_id == LOCALHOST


def test_parse_local_without_sender_keeps_broadcast():
    info = parse_packet_info(bytes([12, 5, Header.NONE, 64]))
    assert info.sender_id == BROADCAST
    assert info.receiver_id == 12


def test_parse_shared_with_sender():
    receiver_bus = bytes([0, 0, 0, 1])
    sender_bus = bytes([0, 0, 0, 2])
    header = Header.SHARED | Header.SENDER_INFO | Header.ACK_REQUEST
    packet = bytes([12, 14, header]) + receiver_bus + sender_bus + bytes([11, 64])
    info = parse_packet_info(packet)
    assert info.receiver_bus_id == receiver_bus
    assert info.sender_bus_id == sender_bus
    assert info.sender_id == 11
    assert packet[payload_offset(info.header)] == 64


def test_parse_shared_without_sender():
    receiver_bus = bytes([127, 0, 0, 1])
    packet = bytes([9, 9, Header.SHARED]) + receiver_bus + b"x"
    info = parse_packet_info(packet)
    assert info.receiver_bus_id == receiver_bus
    assert info.sender_bus_id == LOCALHOST
    assert info.sender_id == BROADCAST


@pytest.mark.parametrize(
    "packet",
    [b"\x01\x05", bytes([1, 9, Header.SHARED | Header.SENDER_INFO, 0, 0, 0, 1])],
)
def test_parse_short_packet_raises(packet):
    with pytest.raises(ValueError):
        parse_packet_info(packet)


def test_content_too_long_error():
    err = ContentTooLongError(60)
    assert err.code is ErrorCode.CONTENT_TOO_LONG
    assert err.data == 60
    assert isinstance(err, PJONError)


def test_packets_buffer_full_error():
    err = PacketsBufferFullError(7)
    assert err.code is ErrorCode.PACKETS_BUFFER_FULL
    assert err.data == 7
    with pytest.raises(PJONError):
        raise err