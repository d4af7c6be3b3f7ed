"""
MD49 register protocol.

Every frame starts with the 0x00 sync byte, followed by one register byte and
0, 1 or 2 payload bytes. Multi-byte payloads and responses are big-endian.
Operations touching several registers (both speeds, full pose) concatenate
their sub-frames into a single send.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterator, List, Tuple, Union
import struct

from .errors import IncompleteResponseError, InvalidParameterError, ProtocolError


SYNC_BYTE = 0x00


class Register(IntEnum):
    """Register addresses understood by the motor driver (and the simulator)."""

    GET_SPEED1 = 0x21
    GET_SPEED2 = 0x22
    GET_ENCODER1 = 0x23
    GET_ENCODER2 = 0x24
    GET_ENCODERS = 0x25
    GET_VOLTS = 0x26
    GET_CURRENT1 = 0x27
    GET_CURRENT2 = 0x28
    GET_VERSION = 0x29
    GET_ACCELERATION = 0x2A
    GET_MODE = 0x2B
    GET_VI = 0x2C
    GET_ERROR = 0x2D

    SET_SPEED1 = 0x31
    SET_SPEED2 = 0x32
    SET_ACCELERATION = 0x33
    SET_MODE = 0x34
    RESET_ENCODERS = 0x35
    DISABLE_REGULATOR = 0x36
    ENABLE_REGULATOR = 0x37
    DISABLE_TIMEOUT = 0x38
    ENABLE_TIMEOUT = 0x39

    # Simulation only
    SET_X = 0x41
    SET_Y = 0x42
    SET_ANGLE = 0x43
    SET_SIMULATION_SPEED = 0x51
    GET_SIMULATION_SPEED = 0x52


class SpeedMode(IntEnum):
    """Interpretation of the speed registers.

    MODE0: each register is one wheel, 0 reverse / 128 stop / 255 forward.
    MODE1: each register is one wheel, -128 reverse / 0 stop / 127 forward.
    MODE2: SPEED1 drives both wheels, SPEED2 is the turn value (offset form).
    MODE3: as MODE2 with signed values.
    """

    MODE0 = 0
    MODE1 = 1
    MODE2 = 2
    MODE3 = 3


# Payload bytes following the register byte of a write frame.
PAYLOAD_LENGTHS: Dict[Register, int] = {
    Register.SET_SPEED1: 1,
    Register.SET_SPEED2: 1,
    Register.SET_ACCELERATION: 1,
    Register.SET_MODE: 1,
    Register.RESET_ENCODERS: 0,
    Register.DISABLE_REGULATOR: 0,
    Register.ENABLE_REGULATOR: 0,
    Register.DISABLE_TIMEOUT: 0,
    Register.ENABLE_TIMEOUT: 0,
    Register.SET_X: 2,
    Register.SET_Y: 2,
    Register.SET_ANGLE: 2,
    Register.SET_SIMULATION_SPEED: 2,
}

# Bytes the driver answers with for each read register.
RESPONSE_LENGTHS: Dict[Register, int] = {
    Register.GET_SPEED1: 1,
    Register.GET_SPEED2: 1,
    Register.GET_ENCODER1: 4,
    Register.GET_ENCODER2: 4,
    Register.GET_ENCODERS: 8,
    Register.GET_VOLTS: 1,
    Register.GET_CURRENT1: 1,
    Register.GET_CURRENT2: 1,
    Register.GET_VERSION: 1,
    Register.GET_ACCELERATION: 1,
    Register.GET_MODE: 1,
    Register.GET_VI: 3,
    Register.GET_ERROR: 1,
    Register.GET_SIMULATION_SPEED: 2,
}

SIMULATION_REGISTERS = frozenset(
    {
        Register.SET_X,
        Register.SET_Y,
        Register.SET_ANGLE,
        Register.SET_SIMULATION_SPEED,
        Register.GET_SIMULATION_SPEED,
    }
)

# Error register bits
BIT_MOTOR1_TRIP = 2
BIT_MOTOR2_TRIP = 3
BIT_MOTOR1_SHORT = 4
BIT_MOTOR2_SHORT = 5
BIT_OVER_30V = 6
BIT_UNDER_16V = 7


def is_read_register(register: int) -> bool:
    return register in RESPONSE_LENGTHS


def expected_response_length(register: int) -> int:
    """Number of bytes the driver answers a read register with."""
    try:
        return RESPONSE_LENGTHS[Register(register)]
    except (ValueError, KeyError):
        raise ProtocolError(f"0x{register:02X} is not a read register") from None


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_frame(register: int, payload: bytes = b"") -> bytes:
    """Build a single frame: sync byte, register, payload."""
    return bytes((SYNC_BYTE, register)) + bytes(payload)


def _int16(value: int, name: str) -> bytes:
    try:
        return struct.pack(">h", int(value))
    except struct.error:
        raise InvalidParameterError(
            f"{name} must fit in a signed 16-bit integer, got {value}"
        ) from None


def _uint16(value: int, name: str) -> bytes:
    try:
        return struct.pack(">H", int(value))
    except struct.error:
        raise InvalidParameterError(
            f"{name} must fit in an unsigned 16-bit integer, got {value}"
        ) from None


def encode_read(register: int) -> bytes:
    """Frame requesting a read register."""
    expected_response_length(register)
    return encode_frame(register)


def encode_set_speed1(speed: int) -> bytes:
    """Speed values are truncated to their low 8 bits; clamp before encoding."""
    return encode_frame(Register.SET_SPEED1, bytes((speed & 0xFF,)))


def encode_set_speed2(speed: int) -> bytes:
    return encode_frame(Register.SET_SPEED2, bytes((speed & 0xFF,)))


def encode_set_speeds(speed1: int, speed2: int) -> bytes:
    """Both speed registers in one send.

    >>> list(encode_set_speeds(20, -20))
    [0, 49, 20, 0, 50, 236]
    """
    return encode_set_speed1(speed1) + encode_set_speed2(speed2)


def encode_set_acceleration(acceleration: int) -> bytes:
    if not 1 <= acceleration <= 10:
        raise InvalidParameterError(
            f"Acceleration must be in the range 1 to 10, got {acceleration}"
        )
    return encode_frame(Register.SET_ACCELERATION, bytes((acceleration,)))


def encode_set_mode(mode: int) -> bytes:
    try:
        mode = SpeedMode(mode)
    except ValueError:
        raise InvalidParameterError(f"Mode must be 0, 1, 2 or 3, got {mode}") from None
    return encode_frame(Register.SET_MODE, bytes((mode,)))


def encode_command(register: int) -> bytes:
    """Frame for a payload-less write register (reset encoders, regulator, timeout)."""
    if PAYLOAD_LENGTHS.get(register) != 0:
        raise ProtocolError(f"0x{register:02X} is not a payload-less write register")
    return encode_frame(register)


def encode_set_x(x: int) -> bytes:
    return encode_frame(Register.SET_X, _int16(x, "x"))


def encode_set_y(y: int) -> bytes:
    return encode_frame(Register.SET_Y, _int16(y, "y"))


def encode_set_angle(degrees: float) -> bytes:
    """Angle is sent in tenths of a degree."""
    return encode_frame(Register.SET_ANGLE, _int16(round(degrees * 10), "angle"))


def encode_set_position(x: int, y: int) -> bytes:
    return encode_set_x(x) + encode_set_y(y)


def encode_set_pose(x: int, y: int, degrees: float) -> bytes:
    return encode_set_x(x) + encode_set_y(y) + encode_set_angle(degrees)


def encode_set_simulation_speed(factor: float) -> bytes:
    """Simulation speed is sent in tenths (10 = real time)."""
    return encode_frame(
        Register.SET_SIMULATION_SPEED, _uint16(round(factor * 10), "simulation speed")
    )


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


Decoded = Union[int, float, Tuple[int, ...]]


def check_response(register: int, data: bytes) -> bytes:
    """Return exactly the expected response bytes or raise IncompleteResponseError."""
    expected = expected_response_length(register)
    if len(data) < expected:
        raise IncompleteResponseError(register, expected, len(data))
    return bytes(data[:expected])


def decode_response(register: int, data: bytes) -> Decoded:
    """Decode a read-register response.

    Single-byte registers decode to their unsigned value, encoders to signed
    32-bit counts, VI to (volts, current1, current2) and the simulation speed
    to a float factor.
    """
    data = check_response(register, data)
    if register in (Register.GET_ENCODER1, Register.GET_ENCODER2):
        return struct.unpack(">i", data)[0]
    if register == Register.GET_ENCODERS:
        return struct.unpack(">ii", data)
    if register == Register.GET_VI:
        return tuple(data)
    if register == Register.GET_SIMULATION_SPEED:
        return struct.unpack(">H", data)[0] / 10.0
    return data[0]


@dataclass(frozen=True)
class ErrorFlags:
    """Fault flags decoded from the error register."""

    volts_under_16: bool = False
    volts_over_30: bool = False
    motor1_trip: bool = False
    motor2_trip: bool = False
    motor1_short: bool = False
    motor2_short: bool = False

    @property
    def any(self) -> bool:
        return (
            self.volts_under_16
            or self.volts_over_30
            or self.motor1_trip
            or self.motor2_trip
            or self.motor1_short
            or self.motor2_short
        )


def decode_error_flags(status: int, legacy_bitmask: bool = False) -> ErrorFlags:
    """Split the error register into fault flags.

    With ``legacy_bitmask`` each bit is tested as ``(status & (1 << n)) == 1``,
    as older controller software did. That comparison is never true for
    n > 0, so every flag reads False.
    """

    def bit(n: int) -> bool:
        if legacy_bitmask:
            return (status & (1 << n)) == 1
        return (status & (1 << n)) != 0

    return ErrorFlags(
        volts_under_16=bit(BIT_UNDER_16V),
        volts_over_30=bit(BIT_OVER_30V),
        motor1_trip=bit(BIT_MOTOR1_TRIP),
        motor2_trip=bit(BIT_MOTOR2_TRIP),
        motor1_short=bit(BIT_MOTOR1_SHORT),
        motor2_short=bit(BIT_MOTOR2_SHORT),
    )


class FrameDecoder:
    """Incremental decoder for a stream of frames sent to the driver.

    Bytes are fed as they arrive; complete frames come out as
    ``(register, payload)`` tuples. Bytes before a sync byte and frames naming
    an unknown register are dropped.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.dropped = 0

    def feed(self, data: bytes) -> List[Tuple[Register, bytes]]:
        self._buffer.extend(data)
        return list(self._drain())

    @property
    def pending(self) -> int:
        """Bytes buffered while waiting for the rest of a frame."""
        return len(self._buffer)

    def _drain(self) -> Iterator[Tuple[Register, bytes]]:
        buf = self._buffer
        while buf:
            if buf[0] != SYNC_BYTE:
                del buf[0]
                self.dropped += 1
                continue
            if len(buf) < 2:
                return
            try:
                register = Register(buf[1])
            except ValueError:
                del buf[0]
                self.dropped += 1
                continue
            size = 2 + PAYLOAD_LENGTHS.get(register, 0)
            if len(buf) < size:
                return
            payload = bytes(buf[2:size])
            del buf[:size]
            yield register, payload
