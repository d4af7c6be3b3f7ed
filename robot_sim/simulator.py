"""
Simulated MD49 motor driver.

SimulatedMotorDriver speaks the register protocol over the Transport
interface, so a MotorDriver can be pointed at it instead of a serial port.
Between frames the robot pose is integrated with the forward kinematics of a
differential drive, using the wall clock (or an injected clock) scaled by the
simulation speed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging
import random
import struct
import threading
import time

from robot.config import SimulatorConfig
from robot.protocol import FrameDecoder, Register, SpeedMode
from robot.units import DEFAULT_CONSTANTS, RobotConstants
from .kinematics import Pose, integrate_pose, motor_speed_to_real_speed, stop_speed, wheel_encoder_deltas
from .world import Obstacle, World


logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class DriverRegisters:
    """Register-visible state of the simulated driver."""

    speed1: int = 128
    speed2: int = 128
    mode: int = int(SpeedMode.MODE0)
    acceleration: int = 5
    volts: int = 24
    current1: int = 10
    current2: int = 10
    version: int = 1
    error: int = 0
    regulator: bool = True
    timeout: bool = True
    encoder1: int = 0
    encoder2: int = 0


def _int32(value: int) -> int:
    return (value + 2 ** 31) % 2 ** 32 - 2 ** 31


class SimulatedMotorDriver:
    """In-process stand-in for the motor driver board.

    Sent bytes are decoded into frames and applied immediately; responses to
    read registers are buffered and handed out by ``receive``. All state is
    guarded by one lock so the executor thread and observers can share it.
    """

    def __init__(
        self,
        world: Optional[World] = None,
        config: Optional[SimulatorConfig] = None,
        constants: RobotConstants = DEFAULT_CONSTANTS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.cfg = config if config is not None else SimulatorConfig()
        self.world = world if world is not None else World(self.cfg.ground_width, self.cfg.ground_height)
        self.constants = constants
        self.clock = clock
        self.rng = random.Random(int(self.cfg.seed))

        self.registers = DriverRegisters()
        self.pose = Pose(self.cfg.start_x, self.cfg.start_y, self.cfg.start_angle % 360.0)
        self.simulation_speed = float(self.cfg.simulation_speed)
        self.trace: List[Tuple[float, float]] = []
        self.collisions: List[Tuple[float, float]] = []
        self.collided_with: List[Obstacle] = []
        self.in_collision = False
        self.closed = False

        self._lock = threading.RLock()
        self._decoder = FrameDecoder()
        self._responses = bytearray()
        now = self.clock()
        self._last_update = now
        self._last_command_time = now

        self._handlers: Dict[Register, Callable[[bytes], None]] = {
            Register.GET_SPEED1: lambda _: self._respond(bytes((self.registers.speed1,))),
            Register.GET_SPEED2: lambda _: self._respond(bytes((self.registers.speed2,))),
            Register.GET_ENCODER1: lambda _: self._respond(struct.pack(">i", self.registers.encoder1)),
            Register.GET_ENCODER2: lambda _: self._respond(struct.pack(">i", self.registers.encoder2)),
            Register.GET_ENCODERS: lambda _: self._respond(
                struct.pack(">ii", self.registers.encoder1, self.registers.encoder2)
            ),
            Register.GET_VOLTS: lambda _: self._respond(bytes((self.registers.volts,))),
            Register.GET_CURRENT1: lambda _: self._respond(bytes((self.registers.current1,))),
            Register.GET_CURRENT2: lambda _: self._respond(bytes((self.registers.current2,))),
            Register.GET_VERSION: lambda _: self._respond(bytes((self.registers.version,))),
            Register.GET_ACCELERATION: lambda _: self._respond(bytes((self.registers.acceleration,))),
            Register.GET_MODE: lambda _: self._respond(bytes((self.registers.mode,))),
            Register.GET_VI: lambda _: self._respond(
                bytes((self.registers.volts, self.registers.current1, self.registers.current2))
            ),
            Register.GET_ERROR: lambda _: self._respond(bytes((self.registers.error,))),
            Register.GET_SIMULATION_SPEED: lambda _: self._respond(
                struct.pack(">H", round(self.simulation_speed * 10) & 0xFFFF)
            ),
            Register.SET_SPEED1: self._set_speed1,
            Register.SET_SPEED2: self._set_speed2,
            Register.SET_ACCELERATION: self._set_acceleration,
            Register.SET_MODE: self._set_mode,
            Register.RESET_ENCODERS: self._reset_encoders,
            Register.DISABLE_REGULATOR: lambda _: setattr(self.registers, "regulator", False),
            Register.ENABLE_REGULATOR: lambda _: setattr(self.registers, "regulator", True),
            Register.DISABLE_TIMEOUT: lambda _: setattr(self.registers, "timeout", False),
            Register.ENABLE_TIMEOUT: lambda _: setattr(self.registers, "timeout", True),
            Register.SET_X: self._set_x,
            Register.SET_Y: self._set_y,
            Register.SET_ANGLE: self._set_angle,
            Register.SET_SIMULATION_SPEED: self._set_simulation_speed,
        }

    @classmethod
    def from_config(
        cls,
        config: SimulatorConfig,
        constants: RobotConstants = DEFAULT_CONSTANTS,
        clock: Clock = time.monotonic,
    ) -> "SimulatedMotorDriver":
        """Build a simulator, loading the obstacle map named in the config."""
        if config.map_file:
            world = World.from_map_file(config.map_file)
        else:
            world = World(config.ground_width, config.ground_height)
        return cls(world=world, config=config, constants=constants, clock=clock)

    # ------------------------------------------------------------------
    # Transport interface
    # ------------------------------------------------------------------
    def send(self, data: bytes, timeout_ms: int) -> bool:
        with self._lock:
            if self.closed:
                return False
            now = self.clock()
            self._advance_to(now)
            for register, payload in self._decoder.feed(data):
                self._handlers[register](payload)
                self._last_command_time = now
            return True

    def receive(self, count: int, timeout_ms: int, blocking: bool = True) -> Optional[bytes]:
        """Hand out buffered response bytes.

        Responses are produced synchronously by ``send``, so a blocking read
        never has more to wait for; it returns what is buffered, which may be
        fewer than ``count`` bytes. None means nothing is buffered.
        """
        with self._lock:
            if self.closed or not self._responses:
                return None
            self._advance_to(self.clock())
            data = bytes(self._responses[:count])
            del self._responses[:count]
            return data

    def close(self) -> None:
        with self._lock:
            self.closed = True

    # ------------------------------------------------------------------
    # Simulation state
    # ------------------------------------------------------------------
    def advance(self) -> Pose:
        """Integrate the robot state up to the current clock time."""
        with self._lock:
            self._advance_to(self.clock())
            return self.pose.copy()

    def get_pose(self) -> Pose:
        with self._lock:
            return self.pose.copy()

    def wheel_speeds(self) -> Tuple[float, float]:
        """Current wheel speeds in mm/s."""
        with self._lock:
            return motor_speed_to_real_speed(
                self.registers.mode, self.registers.speed1, self.registers.speed2, self.constants
            )

    def set_pose(self, x: float, y: float, angle: float) -> None:
        with self._lock:
            self._advance_to(self.clock())
            self.pose.x = float(x)
            self.pose.y = float(y)
            self.pose.angle = float(angle) % 360.0
            self.trace.clear()

    def _advance_to(self, now: float) -> None:
        start = self._last_update
        if now <= start:
            return
        r = self.registers
        if r.timeout:
            deadline = self._last_command_time + self.constants.motor_timeout_ms / 1000.0
            if deadline < now:
                if deadline > start:
                    self._integrate(deadline - start)
                    start = deadline
                self._stop_wheels()
        self._integrate(now - start)
        self._last_update = now

    def _stop_wheels(self) -> None:
        r = self.registers
        value = stop_speed(r.mode)
        if (r.speed1, r.speed2) != (value, value):
            logger.info("Motor timeout: no command for %d ms, stopping wheels", self.constants.motor_timeout_ms)
            r.speed1 = value
            r.speed2 = value

    def _integrate(self, elapsed: float) -> None:
        """Advance the pose by ``elapsed`` wall seconds in fixed simulated steps.

        Every step is checked for collisions, so a long hold cannot carry the
        robot through an obstacle thinner than the distance travelled.
        """
        self._record_trace()

        t = elapsed * self.simulation_speed
        if t <= 0:
            return
        r = self.registers
        v1, v2 = motor_speed_to_real_speed(r.mode, r.speed1, r.speed2, self.constants)
        step = self.cfg.step_ms / 1000.0
        done = 0.0
        while done < t:
            dt = min(step, t - done)
            integrate_pose(self.pose, v1, v2, dt, self.constants.radius)
            done += dt
            self._check_collision()
            self._record_trace()

        d1, d2 = wheel_encoder_deltas(v1, v2, t, self.constants)
        if self.cfg.encoder_noise_std > 0.0:
            d1 += int(round(self.rng.gauss(0.0, self.cfg.encoder_noise_std)))
            d2 += int(round(self.rng.gauss(0.0, self.cfg.encoder_noise_std)))
        r.encoder1 = _int32(r.encoder1 + d1)
        r.encoder2 = _int32(r.encoder2 + d2)

    def _record_trace(self) -> None:
        point = (self.pose.x, self.pose.y)
        if not self.trace or self.trace[-1] != point:
            self.trace.append(point)

    def _check_collision(self) -> None:
        hits = self.world.colliding_obstacles(self.pose.x, self.pose.y, self.constants.radius)
        if hits and not self.in_collision:
            logger.warning("Collision at (%.1f, %.1f)", self.pose.x, self.pose.y)
            self.collisions.append((self.pose.x, self.pose.y))
            for obstacle in hits:
                if obstacle not in self.collided_with:
                    self.collided_with.append(obstacle)
        self.in_collision = bool(hits)

    # ------------------------------------------------------------------
    # Register handlers
    # ------------------------------------------------------------------
    def _respond(self, data: bytes) -> None:
        self._responses.extend(data)

    def _set_speed1(self, payload: bytes) -> None:
        self.registers.speed1 = payload[0]

    def _set_speed2(self, payload: bytes) -> None:
        self.registers.speed2 = payload[0]

    def _set_acceleration(self, payload: bytes) -> None:
        self.registers.acceleration = payload[0]

    def _set_mode(self, payload: bytes) -> None:
        if payload[0] not in tuple(SpeedMode):
            logger.warning("Ignoring unknown speed mode %d", payload[0])
            return
        self.registers.mode = payload[0]

    def _reset_encoders(self, payload: bytes) -> None:
        self.registers.encoder1 = 0
        self.registers.encoder2 = 0

    def _set_x(self, payload: bytes) -> None:
        self.trace.clear()
        self.pose.x = float(struct.unpack(">h", payload)[0])

    def _set_y(self, payload: bytes) -> None:
        self.trace.clear()
        self.pose.y = float(struct.unpack(">h", payload)[0])

    def _set_angle(self, payload: bytes) -> None:
        self.pose.angle = (struct.unpack(">h", payload)[0] / 10.0) % 360.0

    def _set_simulation_speed(self, payload: bytes) -> None:
        self.simulation_speed = struct.unpack(">H", payload)[0] / 10.0
        logger.info("Simulation speed set to %.1f", self.simulation_speed)

    def to_dict(self) -> Dict[str, float]:
        """Serialize pose and wheel state for logging/telemetry."""
        with self._lock:
            r = self.registers
            return {
                "x": self.pose.x,
                "y": self.pose.y,
                "angle": self.pose.angle,
                "speed1": r.speed1,
                "speed2": r.speed2,
                "mode": r.mode,
                "encoder1": r.encoder1,
                "encoder2": r.encoder2,
                "collisions": len(self.collisions),
            }
