from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple
import logging

from robot import protocol
from robot.errors import IncompleteResponseError, TransportError
from robot.protocol import ErrorFlags, Register, SpeedMode
from robot.transport import EventBus, EventKind, StatusEvent, Transport


logger = logging.getLogger(__name__)


class RobotType(Enum):
    REAL = "real"
    SIMULATION = "simulation"


@dataclass(frozen=True)
class HealthReport:
    """Result of one error-register read.

    Faults are never raised; callers inspect ``healthy`` and ``message``.
    """

    flags: ErrorFlags
    healthy: bool
    message: str

    @classmethod
    def from_flags(cls, flags: ErrorFlags) -> "HealthReport":
        clauses: List[str] = []
        if flags.volts_over_30:
            clauses.append("Voltage is over 30 Volts!")
        if flags.volts_under_16:
            clauses.append("Voltage is under 16 Volts!")
        if flags.motor1_trip:
            clauses.append("Motor 1 tripped!")
        if flags.motor2_trip:
            clauses.append("Motor 2 tripped!")
        if flags.motor1_short:
            clauses.append("Motor 1 is short-circuited!")
        if flags.motor2_short:
            clauses.append("Motor 2 is short-circuited!")
        if not clauses:
            return cls(flags=flags, healthy=True, message="The robot works without errors.")
        return cls(
            flags=flags,
            healthy=False,
            message="An error found in robot's work. " + " ".join(clauses),
        )


class MotorDriver:
    """MD49-style dual motor driver reached through a byte transport.

    Every operation is one send (reads are followed by one receive). Sends and
    receives are reported on the event bus in the order before -> call ->
    done/error, and a failed transport call raises TransportError.

    Simulation-only registers (pose, simulation speed) are skipped for a real
    robot.
    """

    def __init__(
        self,
        transport: Transport,
        robot_type: RobotType = RobotType.REAL,
        events: Optional[EventBus] = None,
        send_timeout_ms: int = 1000,
        receive_timeout_ms: int = 1000,
        zero_fill_short_reads: bool = False,
        legacy_status_bitmask: bool = False,
    ) -> None:
        self.transport = transport
        self.robot_type = robot_type
        self.events = events if events is not None else EventBus()
        self.send_timeout_ms = send_timeout_ms
        self.receive_timeout_ms = receive_timeout_ms
        # Legacy behavior: a short read silently becomes zeros.
        self.zero_fill_short_reads = zero_fill_short_reads
        self.legacy_status_bitmask = legacy_status_bitmask

    @property
    def is_simulation(self) -> bool:
        return self.robot_type is RobotType.SIMULATION

    # ------------------------------------------------------------------
    # Transport access
    # ------------------------------------------------------------------
    def send(self, frame: bytes) -> None:
        """Send raw frame bytes, raising TransportError on failure."""
        self.events.emit(StatusEvent(EventKind.BEFORE_SEND, data=frame))
        try:
            ok = self.transport.send(frame, self.send_timeout_ms)
        except OSError as exc:
            self._fail(f"Sending {frame.hex()} failed: {exc}", frame)
            raise TransportError(str(exc)) from exc
        if not ok:
            message = f"Sending {frame.hex()} failed or timed out"
            self._fail(message, frame)
            raise TransportError(message)
        self.events.emit(StatusEvent(EventKind.SENT, data=frame))

    def read(self, register: Register) -> bytes:
        """Request a read register and return exactly its response bytes."""
        expected = protocol.expected_response_length(register)
        self.send(protocol.encode_read(register))

        self.events.emit(StatusEvent(EventKind.BEFORE_RECEIVE, message=f"{expected} bytes"))
        try:
            data = self.transport.receive(expected, self.receive_timeout_ms, True)
        except OSError as exc:
            self._fail(f"Receiving from 0x{register:02X} failed: {exc}")
            raise TransportError(str(exc)) from exc
        if data is None:
            message = f"Receiving from 0x{register:02X} failed or timed out"
            self._fail(message)
            raise TransportError(message)
        self.events.emit(StatusEvent(EventKind.RECEIVED, data=bytes(data)))

        try:
            return protocol.check_response(register, data)
        except IncompleteResponseError as exc:
            if not self.zero_fill_short_reads:
                self._fail(str(exc), bytes(data))
                raise
            logger.warning("%s; substituting zeros", exc)
            return bytes(expected)

    def _fail(self, message: str, data: bytes = b"") -> None:
        logger.error(message)
        self.events.emit(StatusEvent(EventKind.ERROR, message=message, data=data))

    # ------------------------------------------------------------------
    # Read registers
    # ------------------------------------------------------------------
    def get_speed1(self) -> int:
        return self.read(Register.GET_SPEED1)[0]

    def get_speed2(self) -> int:
        return self.read(Register.GET_SPEED2)[0]

    def get_encoder1(self) -> int:
        return protocol.decode_response(Register.GET_ENCODER1, self.read(Register.GET_ENCODER1))

    def get_encoder2(self) -> int:
        return protocol.decode_response(Register.GET_ENCODER2, self.read(Register.GET_ENCODER2))

    def get_encoders(self) -> Tuple[int, int]:
        return protocol.decode_response(Register.GET_ENCODERS, self.read(Register.GET_ENCODERS))

    def get_volts(self) -> int:
        return self.read(Register.GET_VOLTS)[0]

    def get_current1(self) -> int:
        """Left motor current in tenths of an ampere."""
        return self.read(Register.GET_CURRENT1)[0]

    def get_current2(self) -> int:
        """Right motor current in tenths of an ampere."""
        return self.read(Register.GET_CURRENT2)[0]

    def get_vi(self) -> Tuple[int, int, int]:
        """Battery volts and both motor currents in one read."""
        return protocol.decode_response(Register.GET_VI, self.read(Register.GET_VI))

    def get_version(self) -> int:
        return self.read(Register.GET_VERSION)[0]

    def get_acceleration(self) -> int:
        return self.read(Register.GET_ACCELERATION)[0]

    def get_mode(self) -> int:
        return self.read(Register.GET_MODE)[0]

    def get_error(self) -> int:
        return self.read(Register.GET_ERROR)[0]

    def get_error_flags(self) -> ErrorFlags:
        return protocol.decode_error_flags(self.get_error(), self.legacy_status_bitmask)

    def check_health(self) -> HealthReport:
        report = HealthReport.from_flags(self.get_error_flags())
        self.events.status(report.message)
        return report

    def get_simulation_speed(self) -> float:
        """Simulator speed factor; 0.0 for a real robot."""
        if not self.is_simulation:
            return 0.0
        data = self.read(Register.GET_SIMULATION_SPEED)
        return protocol.decode_response(Register.GET_SIMULATION_SPEED, data)

    # ------------------------------------------------------------------
    # Write registers
    # ------------------------------------------------------------------
    def set_speed1(self, speed: int) -> None:
        self.send(protocol.encode_set_speed1(speed))

    def set_speed2(self, speed: int) -> None:
        self.send(protocol.encode_set_speed2(speed))

    def set_speeds(self, speed1: int, speed2: int) -> None:
        self.send(protocol.encode_set_speeds(speed1, speed2))

    def set_acceleration(self, acceleration: int) -> None:
        self.send(protocol.encode_set_acceleration(acceleration))

    def set_mode(self, mode: int) -> None:
        self.send(protocol.encode_set_mode(mode))

    def reset_encoders(self) -> None:
        self.send(protocol.encode_command(Register.RESET_ENCODERS))

    def disable_regulator(self) -> None:
        self.send(protocol.encode_command(Register.DISABLE_REGULATOR))

    def enable_regulator(self) -> None:
        self.send(protocol.encode_command(Register.ENABLE_REGULATOR))

    def disable_timeout(self) -> None:
        self.send(protocol.encode_command(Register.DISABLE_TIMEOUT))

    def enable_timeout(self) -> None:
        self.send(protocol.encode_command(Register.ENABLE_TIMEOUT))

    def set_x(self, x: int) -> None:
        if self.is_simulation:
            self.send(protocol.encode_set_x(x))

    def set_y(self, y: int) -> None:
        if self.is_simulation:
            self.send(protocol.encode_set_y(y))

    def set_angle(self, degrees: float) -> None:
        if self.is_simulation:
            self.send(protocol.encode_set_angle(degrees))

    def set_position(self, x: int, y: int) -> None:
        if self.is_simulation:
            self.send(protocol.encode_set_position(x, y))

    def set_pose(self, x: int, y: int, degrees: float) -> None:
        if self.is_simulation:
            self.send(protocol.encode_set_pose(x, y, degrees))

    def set_simulation_speed(self, factor: float) -> None:
        if self.is_simulation:
            self.send(protocol.encode_set_simulation_speed(factor))

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------
    def prepare_for_execution(self) -> None:
        """Disable the serial timeout and select mode 0 before timed motion."""
        self.disable_timeout()
        self.set_mode(SpeedMode.MODE0)

    def stop(self) -> None:
        """Immediately stop both motors (mode 0, both wheels at 128)."""
        self.set_mode(SpeedMode.MODE0)
        self.set_speeds(128, 128)
