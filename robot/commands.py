"""
Motion commands.

A Command is an immutable instruction for the executor. Its ``type`` tags
which variant it is; the remaining fields are interpreted per type:

- ``amount``: milliseconds for *_FOR_TIME and DO_NOTHING, millimeters for
  *_FOR_DISTANCE, degrees for *_FOR_DEGREES and SET_POSE, a speed factor for
  SET_SIMULATION_SPEED. Ignored by STOP.
- ``speed1``: left wheel speed for SET_SPEED_*, the common speed for
  MOVE_* and ROTATE_*.
- ``speed2``: right wheel speed for SET_SPEED_*.
- ``x``, ``y``: position in millimeters for SET_POSE.

Commands can also be written as text, one per line::

    MoveForwardForDistance 500, 40
    RotateLeftForDegrees 90 20
    Stop
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple
import logging
import re

from .errors import InvalidParameterError
from .units import MAX_SPEED, MIN_SPEED


logger = logging.getLogger(__name__)


class CommandType(Enum):
    SET_SPEED_FOR_TIME = "SetSpeedForTime"
    SET_SPEED_FOR_DISTANCE = "SetSpeedForDistance"
    SET_SPEED_FOR_DEGREES = "SetSpeedForDegrees"
    MOVE_FORWARD_FOR_TIME = "MoveForwardForTime"
    MOVE_FORWARD_FOR_DISTANCE = "MoveForwardForDistance"
    MOVE_BACKWARD_FOR_TIME = "MoveBackwardForTime"
    MOVE_BACKWARD_FOR_DISTANCE = "MoveBackwardForDistance"
    ROTATE_LEFT_FOR_TIME = "RotateLeftForTime"
    ROTATE_LEFT_FOR_DEGREES = "RotateLeftForDegrees"
    ROTATE_RIGHT_FOR_TIME = "RotateRightForTime"
    ROTATE_RIGHT_FOR_DEGREES = "RotateRightForDegrees"
    STOP = "Stop"
    DO_NOTHING = "DoNothing"
    SET_POSE = "SetPose"
    SET_SIMULATION_SPEED = "SetSimulationSpeed"


# Text argument layout per type: a = amount, 1 = speed1, 2 = speed2, x/y = position.
_ARGUMENTS: Dict[CommandType, str] = {
    CommandType.SET_SPEED_FOR_TIME: "a12",
    CommandType.SET_SPEED_FOR_DISTANCE: "a12",
    CommandType.SET_SPEED_FOR_DEGREES: "a12",
    CommandType.MOVE_FORWARD_FOR_TIME: "a1",
    CommandType.MOVE_FORWARD_FOR_DISTANCE: "a1",
    CommandType.MOVE_BACKWARD_FOR_TIME: "a1",
    CommandType.MOVE_BACKWARD_FOR_DISTANCE: "a1",
    CommandType.ROTATE_LEFT_FOR_TIME: "a1",
    CommandType.ROTATE_LEFT_FOR_DEGREES: "a1",
    CommandType.ROTATE_RIGHT_FOR_TIME: "a1",
    CommandType.ROTATE_RIGHT_FOR_DEGREES: "a1",
    CommandType.STOP: "",
    CommandType.DO_NOTHING: "a",
    CommandType.SET_POSE: "xya",
    CommandType.SET_SIMULATION_SPEED: "a",
}

_BY_NAME = {t.value.lower(): t for t in CommandType}


@dataclass(frozen=True)
class Command:
    type: CommandType
    speed1: int = 0
    speed2: int = 0
    amount: float = 0.0
    x: int = 0
    y: int = 0

    def __post_init__(self) -> None:
        for name in ("speed1", "speed2"):
            value = getattr(self, name)
            if not MIN_SPEED <= value <= MAX_SPEED:
                raise InvalidParameterError(
                    f"{name} must be in the range {MIN_SPEED} to {MAX_SPEED}, got {value}"
                )

    def __str__(self) -> str:
        values = {"a": f"{self.amount:.10g}", "1": str(self.speed1), "2": str(self.speed2),
                  "x": str(self.x), "y": str(self.y)}
        args = ", ".join(values[c] for c in _ARGUMENTS[self.type])
        return f"{self.type.value} {args}".strip()

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def set_speed_for_time(cls, ms: float, speed1: int, speed2: int) -> "Command":
        return cls(CommandType.SET_SPEED_FOR_TIME, speed1, speed2, ms)

    @classmethod
    def set_speed_for_distance(cls, mm: float, speed1: int, speed2: int) -> "Command":
        return cls(CommandType.SET_SPEED_FOR_DISTANCE, speed1, speed2, mm)

    @classmethod
    def set_speed_for_degrees(cls, degrees: float, speed1: int, speed2: int) -> "Command":
        return cls(CommandType.SET_SPEED_FOR_DEGREES, speed1, speed2, degrees)

    @classmethod
    def move_forward_for_time(cls, ms: float, speed: int) -> "Command":
        return cls(CommandType.MOVE_FORWARD_FOR_TIME, speed, amount=ms)

    @classmethod
    def move_forward_for_distance(cls, mm: float, speed: int) -> "Command":
        return cls(CommandType.MOVE_FORWARD_FOR_DISTANCE, speed, amount=mm)

    @classmethod
    def move_backward_for_time(cls, ms: float, speed: int) -> "Command":
        return cls(CommandType.MOVE_BACKWARD_FOR_TIME, speed, amount=ms)

    @classmethod
    def move_backward_for_distance(cls, mm: float, speed: int) -> "Command":
        return cls(CommandType.MOVE_BACKWARD_FOR_DISTANCE, speed, amount=mm)

    @classmethod
    def rotate_left_for_time(cls, ms: float, speed: int) -> "Command":
        return cls(CommandType.ROTATE_LEFT_FOR_TIME, speed, amount=ms)

    @classmethod
    def rotate_left_for_degrees(cls, degrees: float, speed: int) -> "Command":
        return cls(CommandType.ROTATE_LEFT_FOR_DEGREES, speed, amount=degrees)

    @classmethod
    def rotate_right_for_time(cls, ms: float, speed: int) -> "Command":
        return cls(CommandType.ROTATE_RIGHT_FOR_TIME, speed, amount=ms)

    @classmethod
    def rotate_right_for_degrees(cls, degrees: float, speed: int) -> "Command":
        return cls(CommandType.ROTATE_RIGHT_FOR_DEGREES, speed, amount=degrees)

    @classmethod
    def stop(cls) -> "Command":
        return cls(CommandType.STOP)

    @classmethod
    def do_nothing(cls, ms: float) -> "Command":
        return cls(CommandType.DO_NOTHING, amount=ms)

    @classmethod
    def set_pose(cls, x: int, y: int, degrees: float) -> "Command":
        return cls(CommandType.SET_POSE, amount=degrees, x=x, y=y)

    @classmethod
    def set_simulation_speed(cls, factor: float) -> "Command":
        return cls(CommandType.SET_SIMULATION_SPEED, amount=factor)


# ---------------------------------------------------------------------------
# Text parsing
# ---------------------------------------------------------------------------


def parse_command(line: str) -> Command:
    """Parse ``"<Type> <arg>, <arg> ..."`` (type name is case-insensitive).

    Raises
    ------
    ValueError
        Unknown type, wrong number of arguments or malformed numbers.
    """
    tokens = [t for t in re.split(r"[\s,]+", line.strip()) if t]
    if not tokens:
        raise ValueError("Empty command")
    try:
        cmd_type = _BY_NAME[tokens[0].lower()]
    except KeyError:
        raise ValueError(f"Unknown command {tokens[0]!r}") from None

    layout = _ARGUMENTS[cmd_type]
    args = tokens[1:]
    if len(args) != len(layout):
        raise ValueError(
            f"The {cmd_type.value} command requires exactly {len(layout)} arguments"
        )

    fields: Dict[str, float] = {}
    for code, text in zip(layout, args):
        if code == "a":
            fields["amount"] = float(text)
        elif code == "1":
            fields["speed1"] = int(text)
        elif code == "2":
            fields["speed2"] = int(text)
        else:
            fields[code] = int(text)
    return Command(cmd_type, **fields)


def parse_commands(text: str, skip_errors: bool = True) -> List[Command]:
    """Parse one command per line; blank lines and ``#`` comments are ignored.

    With ``skip_errors`` malformed lines are logged and dropped, otherwise the
    first error propagates.
    """
    commands: List[Command] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        try:
            commands.append(parse_command(line))
        except ValueError as exc:
            if not skip_errors:
                raise ValueError(f"line {lineno}: {exc}") from exc
            logger.warning("Skipping line %d (%r): %s", lineno, line, exc)
    return commands


def argument_layout(cmd_type: CommandType) -> Tuple[str, ...]:
    """Names of the text arguments a command type takes, in order."""
    names = {"a": "amount", "1": "speed1", "2": "speed2", "x": "x", "y": "y"}
    return tuple(names[c] for c in _ARGUMENTS[cmd_type])
