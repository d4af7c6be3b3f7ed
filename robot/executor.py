"""
Motion executor.

Commands are queued from any thread and drained by a single executor thread.
Each command is taken off the queue, translated into a MotionPlan (pure, no
I/O), sent to the motor driver and then held for the planned duration:

    IDLE -> DEQUEUE -> TRANSLATE -> SEND -> WAIT -> COMPLETED -> DEQUEUE ...

The drain returns to IDLE when the queue is empty, when ``stop()`` empties it,
or when the transport fails.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple
import logging
import math
import threading
import time

from .commands import Command, CommandType
from .drivers.motor_driver import HealthReport, MotorDriver
from .errors import InvalidParameterError, MotionError, TransportError
from .transport import EventBus, EventKind, StatusEvent
from .units import DEFAULT_CONSTANTS, RobotConstants, mode0_speed_byte


logger = logging.getLogger(__name__)


@dataclass
class ExecutorConfig:
    """Executor settings.

    Attributes
    ----------
    simulation_speed : float
        Pacing factor; every wait lasts ``duration_ms / simulation_speed``.
    send_timeout_ms, receive_timeout_ms : int
        Timeouts handed to the transport.
    prepare_on_start : bool
        Disable the driver timeout and select mode 0 once per drain.
    interrupt_on_stop : bool
        Let ``stop()`` cut short a wait that is in progress.
    """

    simulation_speed: float = 1.0
    send_timeout_ms: int = 1000
    receive_timeout_ms: int = 1000
    prepare_on_start: bool = True
    interrupt_on_stop: bool = False
    constants: RobotConstants = field(default_factory=RobotConstants)

    def __post_init__(self) -> None:
        if not self.simulation_speed > 0:
            raise InvalidParameterError(
                f"simulation_speed must be positive, got {self.simulation_speed}"
            )


class ExecutorState(Enum):
    IDLE = "idle"
    DEQUEUE = "dequeue"
    TRANSLATE = "translate"
    SEND = "send"
    WAIT = "wait"
    COMPLETED = "completed"


class CommandQueue:
    """FIFO of commands shared between producers and the executor thread."""

    def __init__(self) -> None:
        self._items: Deque[Command] = deque()
        self._lock = threading.Lock()

    def put(self, command: Command) -> None:
        with self._lock:
            self._items.append(command)

    def extend(self, commands: Iterable[Command]) -> None:
        with self._lock:
            self._items.extend(commands)

    def pop(self) -> Optional[Command]:
        """Remove and return the head, or None when empty."""
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def clear(self) -> int:
        with self._lock:
            count = len(self._items)
            self._items.clear()
            return count

    def snapshot(self) -> List[Command]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MotionPlan:
    """What one command does on the wire.

    ``speeds`` is None when the command sends no speeds (wait-only commands,
    pose and simulation-speed changes). ``duration_ms`` is the real-time hold
    before the next command.
    """

    speeds: Optional[Tuple[int, int]]
    duration_ms: float
    reset_mode: bool = False
    description: str = ""


def _require_non_negative(value: float, what: str) -> None:
    if value < 0:
        raise InvalidParameterError(f"{what} must not be negative, got {value}")


def _speeds_message(s1: int, s2: int, ms: float, c: RobotConstants) -> str:
    return (
        f"Setting the speed of the left wheel to {s1} ({s1 * c.speed_to_mm_per_s:.1f} mm/s) "
        f"and the right wheel to {s2} ({s2 * c.speed_to_mm_per_s:.1f} mm/s) "
        f"for {ms:.2f} milliseconds."
    )


def _straight_message(speed: int, ms: float, c: RobotConstants) -> str:
    direction = "forward" if speed >= 0 else "backward"
    return (
        f"Moving straight {direction} with the speed of both wheels set to "
        f"{abs(speed)} ({abs(speed) * c.speed_to_mm_per_s:.1f} mm/s) "
        f"for {ms:.2f} milliseconds."
    )


def _turn_message(left: int, ms: float, c: RobotConstants) -> str:
    # Left wheel reversed turns the robot counterclockwise.
    direction = "counterclockwise" if left < 0 else "clockwise"
    speed = abs(left)
    return (
        f"Turning robot {direction} with the speed of both wheels set to "
        f"{speed} ({speed * c.speed_to_mm_per_s:.1f} mm/s) for {ms:.2f} milliseconds."
    )


def time_for_distance(distance: float, speed: int, c: RobotConstants = DEFAULT_CONSTANTS) -> float:
    """Milliseconds needed to cover ``distance`` mm at a wheel speed."""
    if speed == 0:
        raise InvalidParameterError("Speed must not be zero for a distance command")
    return distance / (c.speed_to_mm_per_s * abs(speed)) * 1000.0


def time_for_degrees(degrees: float, speed1: int, speed2: int,
                     c: RobotConstants = DEFAULT_CONSTANTS) -> float:
    """Milliseconds needed to turn ``degrees`` with the given wheel speeds.

    The wheel speed difference is in mm/ms, so the arc length travelled by the
    wheels relative to each other divided by it gives milliseconds.
    """
    delta = (speed1 - speed2) * c.speed_to_mm_per_s / 1000.0
    if delta == 0:
        raise InvalidParameterError(
            "Wheel speeds must differ to turn by a number of degrees"
        )
    arc = c.wheel_separation * degrees * math.pi / 180.0
    return abs(arc / delta)


def _plan_speeds_for_time(cmd: Command, c: RobotConstants) -> MotionPlan:
    _require_non_negative(cmd.amount, "Time")
    ms = cmd.amount
    return MotionPlan((cmd.speed1, cmd.speed2), ms,
                      description=_speeds_message(cmd.speed1, cmd.speed2, ms, c))


def _plan_speeds_for_distance(cmd: Command, c: RobotConstants) -> MotionPlan:
    _require_non_negative(cmd.amount, "Distance")
    center = (cmd.speed1 + cmd.speed2) / 2.0 * c.speed_to_mm_per_s
    if center == 0:
        raise InvalidParameterError(
            "Wheel speeds cancel out; the robot would not travel any distance"
        )
    ms = cmd.amount / abs(center) * 1000.0
    return MotionPlan((cmd.speed1, cmd.speed2), ms,
                      description=_speeds_message(cmd.speed1, cmd.speed2, ms, c))


def _plan_speeds_for_degrees(cmd: Command, c: RobotConstants) -> MotionPlan:
    ms = time_for_degrees(cmd.amount, cmd.speed1, cmd.speed2, c)
    return MotionPlan((cmd.speed1, cmd.speed2), ms,
                      description=_speeds_message(cmd.speed1, cmd.speed2, ms, c))


def _plan_straight(sign: int, by_distance: bool) -> Callable[[Command, RobotConstants], MotionPlan]:
    def plan(cmd: Command, c: RobotConstants) -> MotionPlan:
        if by_distance:
            _require_non_negative(cmd.amount, "Distance")
            ms = time_for_distance(cmd.amount, cmd.speed1, c)
        else:
            _require_non_negative(cmd.amount, "Time")
            ms = cmd.amount
        speed = sign * cmd.speed1
        return MotionPlan((speed, speed), ms, description=_straight_message(speed, ms, c))

    return plan


def _plan_rotate(left_sign: int, by_degrees: bool) -> Callable[[Command, RobotConstants], MotionPlan]:
    def plan(cmd: Command, c: RobotConstants) -> MotionPlan:
        left = left_sign * cmd.speed1
        right = -left
        if by_degrees:
            ms = time_for_degrees(cmd.amount, left, right, c)
        else:
            _require_non_negative(cmd.amount, "Time")
            ms = cmd.amount
        return MotionPlan((left, right), ms, description=_turn_message(left, ms, c))

    return plan


def _plan_stop(cmd: Command, c: RobotConstants) -> MotionPlan:
    return MotionPlan((0, 0), 0.0, reset_mode=True, description="Stopping robot.")


def _plan_do_nothing(cmd: Command, c: RobotConstants) -> MotionPlan:
    _require_non_negative(cmd.amount, "Time")
    return MotionPlan(
        None, cmd.amount,
        description=f"Robot will keep the current state for {cmd.amount:.2f} milliseconds.",
    )


def _plan_set_pose(cmd: Command, c: RobotConstants) -> MotionPlan:
    return MotionPlan(
        None, 0.0,
        description=f"Setting robot pose to x={cmd.x} mm, y={cmd.y} mm, angle={cmd.amount:g} degrees.",
    )


def _plan_set_simulation_speed(cmd: Command, c: RobotConstants) -> MotionPlan:
    if not cmd.amount > 0:
        raise InvalidParameterError(f"Simulation speed must be positive, got {cmd.amount}")
    return MotionPlan(None, 0.0, description=f"Setting simulation speed to {cmd.amount:g}.")


_PLANNERS: Dict[CommandType, Callable[[Command, RobotConstants], MotionPlan]] = {
    CommandType.SET_SPEED_FOR_TIME: _plan_speeds_for_time,
    CommandType.SET_SPEED_FOR_DISTANCE: _plan_speeds_for_distance,
    CommandType.SET_SPEED_FOR_DEGREES: _plan_speeds_for_degrees,
    CommandType.MOVE_FORWARD_FOR_TIME: _plan_straight(+1, by_distance=False),
    CommandType.MOVE_FORWARD_FOR_DISTANCE: _plan_straight(+1, by_distance=True),
    CommandType.MOVE_BACKWARD_FOR_TIME: _plan_straight(-1, by_distance=False),
    CommandType.MOVE_BACKWARD_FOR_DISTANCE: _plan_straight(-1, by_distance=True),
    CommandType.ROTATE_LEFT_FOR_TIME: _plan_rotate(-1, by_degrees=False),
    CommandType.ROTATE_LEFT_FOR_DEGREES: _plan_rotate(-1, by_degrees=True),
    CommandType.ROTATE_RIGHT_FOR_TIME: _plan_rotate(+1, by_degrees=False),
    CommandType.ROTATE_RIGHT_FOR_DEGREES: _plan_rotate(+1, by_degrees=True),
    CommandType.STOP: _plan_stop,
    CommandType.DO_NOTHING: _plan_do_nothing,
    CommandType.SET_POSE: _plan_set_pose,
    CommandType.SET_SIMULATION_SPEED: _plan_set_simulation_speed,
}


def plan_motion(command: Command, constants: RobotConstants = DEFAULT_CONSTANTS) -> MotionPlan:
    """Translate a command into wheel speeds and a hold duration.

    Raises
    ------
    InvalidParameterError
        Negative time or distance, or speeds that cannot produce the motion.
    NotImplementedError
        The command type has no translation.
    """
    try:
        planner = _PLANNERS[command.type]
    except KeyError:
        raise NotImplementedError(f"No translation for {command.type}") from None
    return planner(command, constants)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class MotionExecutor:
    """Drains a command queue against a motor driver with real-time pacing."""

    def __init__(
        self,
        driver: MotorDriver,
        config: Optional[ExecutorConfig] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.driver = driver
        self.config = config if config is not None else ExecutorConfig()
        self.events = events if events is not None else driver.events
        self.queue = CommandQueue()
        self.state = ExecutorState.IDLE
        self.last_error: Optional[Exception] = None
        self.completed: List[Command] = []

        self._simulation_speed = self.config.simulation_speed
        self._interrupt = threading.Event()
        self._stop_lock = threading.Lock()
        self._stop_generation = 0
        self._thread: Optional[threading.Thread] = None
        self._thread_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    def enqueue(self, command: Command) -> None:
        self.queue.put(command)

    def enqueue_many(self, commands: Iterable[Command]) -> None:
        self.queue.extend(commands)

    def stop(self) -> None:
        """Empty the queue.

        A hold already in progress runs to completion unless the executor was
        configured with ``interrupt_on_stop``. Commands enqueued after the
        call are held for their full duration.
        """
        dropped = self.queue.clear()
        if dropped:
            logger.info("Dropped %d queued command(s)", dropped)
        if self.config.interrupt_on_stop:
            with self._stop_lock:
                self._stop_generation += 1
                self._interrupt.set()

    @property
    def simulation_speed(self) -> float:
        return self._simulation_speed

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    # ------------------------------------------------------------------
    # Drain
    # ------------------------------------------------------------------
    def start(self) -> threading.Thread:
        """Drain the queue on a background thread (no-op while one is running)."""
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                return self._thread
            self._thread = threading.Thread(target=self.run, name="motion-executor", daemon=True)
            self._thread.start()
            return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def run(self) -> None:
        """Drain the queue on the calling thread until it is empty."""
        self.last_error = None
        self.events.status("Starting execution of command queue...")
        try:
            if self.config.prepare_on_start:
                self.prepare()
            while True:
                self.state = ExecutorState.DEQUEUE
                generation = self._stop_generation
                command = self.queue.pop()
                if command is None:
                    break
                try:
                    self.execute(command, generation)
                except InvalidParameterError as exc:
                    self._report(exc, f"Skipping {command}: {exc}")
        except TransportError as exc:
            remaining = len(self.queue)
            self._report(exc, f"Transport failure, {remaining} command(s) left in queue: {exc}")
        finally:
            self.state = ExecutorState.IDLE
            self.events.status("Stopped execution of command queue.")

    def execute(self, command: Command, generation: Optional[int] = None) -> MotionPlan:
        """Run one command: translate, send, wait."""
        if generation is None:
            generation = self._stop_generation
        self.state = ExecutorState.TRANSLATE
        plan = plan_motion(command, self.config.constants)

        self.state = ExecutorState.SEND
        if plan.description:
            self.events.status(plan.description)
        self._apply(command, plan)

        if plan.duration_ms > 0:
            self.state = ExecutorState.WAIT
            self._wait(plan.duration_ms, generation)

        self.state = ExecutorState.COMPLETED
        self.completed.append(command)
        return plan

    def _apply(self, command: Command, plan: MotionPlan) -> None:
        if command.type is CommandType.SET_POSE:
            self.driver.set_pose(command.x, command.y, command.amount)
            return
        if command.type is CommandType.SET_SIMULATION_SPEED:
            self._simulation_speed = command.amount
            self.driver.set_simulation_speed(command.amount)
            return
        if plan.reset_mode:
            self.driver.stop()
            return
        if plan.speeds is not None:
            s1, s2 = plan.speeds
            self.driver.set_speeds(mode0_speed_byte(s1), mode0_speed_byte(s2))

    def _wait(self, duration_ms: float, generation: int) -> None:
        """Hold for ``duration_ms`` scaled by the simulation speed.

        With ``interrupt_on_stop`` the hold ends early only for a ``stop()``
        issued after the command was dequeued (``generation`` changed).
        """
        seconds = duration_ms / self._simulation_speed / 1000.0
        if not self.config.interrupt_on_stop:
            time.sleep(seconds)
            return
        deadline = time.monotonic() + seconds
        while True:
            with self._stop_lock:
                if self._stop_generation != generation:
                    logger.info("Wait interrupted by stop()")
                    return
                self._interrupt.clear()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            self._interrupt.wait(remaining)

    def _report(self, exc: MotionError, message: str) -> None:
        self.last_error = exc
        logger.error(message)
        self.events.emit(StatusEvent(EventKind.ERROR, message=message))

    # ------------------------------------------------------------------
    # Driver helpers
    # ------------------------------------------------------------------
    def prepare(self) -> None:
        """Disable the driver's serial timeout and switch to mode 0."""
        self.driver.prepare_for_execution()

    def check_health(self) -> HealthReport:
        return self.driver.check_health()
