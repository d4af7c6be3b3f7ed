from __future__ import annotations

import math

import pytest

from robot import protocol
from robot.errors import IncompleteResponseError, InvalidParameterError, ProtocolError
from robot.protocol import FrameDecoder, Register


def test_set_speeds_frame_bytes() -> None:
    assert list(protocol.encode_set_speeds(20, -20)) == [0x00, 0x31, 0x14, 0x00, 0x32, 0xEC]


def test_read_and_command_frames() -> None:
    assert protocol.encode_read(Register.GET_ENCODERS) == bytes([0x00, 0x25])
    assert protocol.encode_command(Register.DISABLE_TIMEOUT) == bytes([0x00, 0x38])
    assert protocol.encode_set_mode(2) == bytes([0x00, 0x34, 0x02])
    assert protocol.encode_set_acceleration(5) == bytes([0x00, 0x33, 0x05])


def test_invalid_write_parameters() -> None:
    with pytest.raises(InvalidParameterError):
        protocol.encode_set_acceleration(0)
    with pytest.raises(InvalidParameterError):
        protocol.encode_set_mode(4)
    with pytest.raises(ProtocolError):
        protocol.encode_command(Register.SET_SPEED1)
    with pytest.raises(ProtocolError):
        protocol.encode_read(Register.SET_MODE)


def test_pose_frames_are_big_endian() -> None:
    frame = protocol.encode_set_pose(1000, -2, 90.5)
    assert list(frame) == [
        0x00, 0x41, 0x03, 0xE8,
        0x00, 0x42, 0xFF, 0xFE,
        0x00, 0x43, 0x03, 0x89,
    ]
    assert list(protocol.encode_set_simulation_speed(2.5)) == [0x00, 0x51, 0x00, 0x19]
    with pytest.raises(InvalidParameterError):
        protocol.encode_set_x(40000)


def test_response_lengths() -> None:
    assert protocol.expected_response_length(Register.GET_SPEED1) == 1
    assert protocol.expected_response_length(Register.GET_SIMULATION_SPEED) == 2
    assert protocol.expected_response_length(Register.GET_VI) == 3
    assert protocol.expected_response_length(Register.GET_ENCODER2) == 4
    assert protocol.expected_response_length(Register.GET_ENCODERS) == 8


def test_decode_responses() -> None:
    assert protocol.decode_response(Register.GET_ENCODER1, bytes([0xFF, 0xFF, 0xFF, 0xFE])) == -2
    assert protocol.decode_response(
        Register.GET_ENCODERS, bytes([0, 0, 1, 0, 0xFF, 0xFF, 0xFF, 0xFF])
    ) == (256, -1)
    assert protocol.decode_response(Register.GET_VI, bytes([24, 10, 11])) == (24, 10, 11)
    assert math.isclose(protocol.decode_response(Register.GET_SIMULATION_SPEED, bytes([0, 25])), 2.5)
    assert protocol.decode_response(Register.GET_MODE, bytes([3])) == 3


def test_short_response_raises() -> None:
    with pytest.raises(IncompleteResponseError) as excinfo:
        protocol.decode_response(Register.GET_ENCODERS, bytes(5))
    assert excinfo.value.expected == 8
    assert excinfo.value.received == 5


def test_error_flags() -> None:
    flags = protocol.decode_error_flags(0b1000_0100)
    assert flags.volts_under_16
    assert flags.motor1_trip
    assert not flags.volts_over_30
    assert not flags.motor2_short
    assert flags.any
    assert not protocol.decode_error_flags(0).any


def test_error_flags_legacy_bitmask_reports_nothing() -> None:
    assert not protocol.decode_error_flags(0xFF, legacy_bitmask=True).any


def test_frame_decoder_splits_stream() -> None:
    decoder = FrameDecoder()
    stream = protocol.encode_set_speeds(148, 108) + protocol.encode_read(Register.GET_ERROR)
    frames = decoder.feed(stream[:3])
    assert frames == [(Register.SET_SPEED1, bytes([148]))]
    frames = decoder.feed(stream[3:])
    assert frames == [(Register.SET_SPEED2, bytes([108])), (Register.GET_ERROR, b"")]
    assert decoder.pending == 0


def test_frame_decoder_skips_garbage() -> None:
    decoder = FrameDecoder()
    frames = decoder.feed(bytes([0x55, 0x00, 0x99, 0x00, 0x35]))
    assert frames == [(Register.RESET_ENCODERS, b"")]
    assert decoder.dropped == 3
