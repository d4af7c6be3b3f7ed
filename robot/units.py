"""
Unit conversions for the differential-drive robot.

Converts between motor-driver speed units, millimeters per second,
millimeters, encoder counts and signed/unsigned byte representations.

The speed factor is an empirical linear approximation of the MD49 speed
register. The real wheel response may be non-linear near the extremes of the
speed range, so distances derived from it are estimates.
"""

from __future__ import annotations

from dataclasses import dataclass
import math


WHEEL_DIAMETER_MM = 125.0
ROBOT_RADIUS_MM = 250
ENCODER_COUNTS_PER_TURN = 980
SPEED_TO_MM_PER_S = 6.25
MOTOR_TIMEOUT_MS = 2000

MAX_SPEED = 127
MIN_SPEED = -127


@dataclass(frozen=True)
class RobotConstants:
    """Physical constants shared by the executor, codec and simulator.

    Attributes
    ----------
    wheel_diameter : float
        Wheel diameter (millimeters).
    radius : float
        Robot radius (millimeters). Wheel separation is twice this value.
    encoder_counts_per_turn : int
        Encoder pulses per full wheel revolution.
    speed_to_mm_per_s : float
        Millimeters per second for one unit of the speed register.
    motor_timeout_ms : int
        Driver stops the motors after this much serial silence (when enabled).
    """

    wheel_diameter: float = WHEEL_DIAMETER_MM
    radius: float = ROBOT_RADIUS_MM
    encoder_counts_per_turn: int = ENCODER_COUNTS_PER_TURN
    speed_to_mm_per_s: float = SPEED_TO_MM_PER_S
    motor_timeout_ms: int = MOTOR_TIMEOUT_MS

    @property
    def mm_per_encoder_count(self) -> float:
        """Linear wheel travel for one encoder count."""
        return self.wheel_diameter * math.pi / self.encoder_counts_per_turn

    @property
    def wheel_separation(self) -> float:
        return 2.0 * self.radius


DEFAULT_CONSTANTS = RobotConstants()


# ---------------------------------------------------------------------------
# Speed and distance
# ---------------------------------------------------------------------------


def speed_to_mm_per_second(
    speed: float, constants: RobotConstants = DEFAULT_CONSTANTS
) -> float:
    """Convert a speed register value to millimeters per second."""
    return speed * constants.speed_to_mm_per_s


def mm_per_second_to_speed(
    velocity: float, constants: RobotConstants = DEFAULT_CONSTANTS
) -> int:
    """Convert millimeters per second to a speed register value.

    Truncates toward zero (no rounding).
    """
    return int(velocity / constants.speed_to_mm_per_s)


def distance_to_encoder_count(
    distance: float, constants: RobotConstants = DEFAULT_CONSTANTS
) -> int:
    """Number of whole encoder counts for a wheel travel in millimeters."""
    return int(distance / constants.mm_per_encoder_count)


def encoder_count_to_distance(
    count: int, constants: RobotConstants = DEFAULT_CONSTANTS
) -> float:
    """Wheel travel in millimeters for an encoder count."""
    return count * constants.mm_per_encoder_count


def clamp_speed(speed: int) -> int:
    """Clamp a signed speed to the range accepted by movement commands."""
    return max(MIN_SPEED, min(MAX_SPEED, int(speed)))


# ---------------------------------------------------------------------------
# Byte representations
# ---------------------------------------------------------------------------


def signed_to_unsigned_byte(number: int) -> int:
    """Read a signed 8-bit integer as unsigned (0-255)."""
    return ((number % 256) + 256) % 256


def unsigned_to_signed_byte(number: int) -> int:
    """Read an unsigned 8-bit integer as signed (-128..127)."""
    number = number % 256
    if number <= 127:
        return number
    return number - 256


def mode0_speed_byte(speed: int) -> int:
    """Mode 0 register encoding: 0 full reverse, 128 stop, 255 full forward."""
    return (speed + 128) & 0xFF
