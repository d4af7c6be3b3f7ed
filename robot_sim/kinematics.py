from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple
import math

from robot.protocol import SpeedMode
from robot.units import DEFAULT_CONSTANTS, RobotConstants, unsigned_to_signed_byte


STRAIGHT_TOLERANCE = 1e-5


@dataclass
class Pose:
    """Robot pose in world coordinates.

    Attributes
    ----------
    x : float
        X position (millimeters).
    y : float
        Y position (millimeters).
    angle : float
        Heading (degrees in [0, 360)), CCW from +x.
    """

    x: float = 0.0
    y: float = 0.0
    angle: float = 0.0

    def copy(self) -> "Pose":
        return Pose(x=self.x, y=self.y, angle=self.angle)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize pose to a dict for logging/telemetry."""
        return {"x": self.x, "y": self.y, "angle": self.angle}


def wrap_degrees(angle: float) -> float:
    """Wrap angle to [0, 360) degrees."""
    return angle % 360.0


def integrate_pose(
    pose: Pose,
    v1: float,
    v2: float,
    t: float,
    radius: float = DEFAULT_CONSTANTS.radius,
) -> Pose:
    """Advance ``pose`` in place by ``t`` seconds at wheel speeds v1, v2 (mm/s).

    Equal wheel speeds move in a straight line. Otherwise the robot rotates
    about its instantaneous center of curvature, which lies on the wheel
    axis at signed distance r from the robot center.
    """
    theta = math.radians(pose.angle)

    if abs(v1 - v2) < STRAIGHT_TOLERANCE:
        pose.x += v1 * math.cos(theta) * t
        pose.y += v1 * math.sin(theta) * t
        return pose

    separation = 2.0 * radius
    r = (separation / 2.0) * (v1 + v2) / (v2 - v1)
    omega = (v2 - v1) / separation

    icc_x = pose.x - r * math.sin(theta)
    icc_y = pose.y + r * math.cos(theta)

    dtheta = omega * t
    c = math.cos(dtheta)
    s = math.sin(dtheta)
    dx = pose.x - icc_x
    dy = pose.y - icc_y

    pose.x = c * dx - s * dy + icc_x
    pose.y = s * dx + c * dy + icc_y
    pose.angle = wrap_degrees(pose.angle + math.degrees(dtheta))
    return pose


def motor_speed_to_real_speed(
    mode: int,
    raw1: int,
    raw2: int,
    constants: RobotConstants = DEFAULT_CONSTANTS,
) -> Tuple[float, float]:
    """Wheel speeds in mm/s for raw speed register bytes under a speed mode.

    Mode 0 and 1 address each wheel directly (offset and signed encoding).
    Mode 2 and 3 treat register 1 as the common drive speed and register 2 as
    the turn value, saturating each wheel at the register range.
    """
    raw1 &= 0xFF
    raw2 &= 0xFF

    if mode == SpeedMode.MODE0:
        w1 = raw1 - 128
        w2 = raw2 - 128
    elif mode == SpeedMode.MODE1:
        w1 = unsigned_to_signed_byte(raw1)
        w2 = unsigned_to_signed_byte(raw2)
    elif mode == SpeedMode.MODE2:
        # forward
        if raw1 >= 128:
            w1 = min(127, raw1 + raw2 - 256)
            w2 = min(127, raw1 - raw2)
        else:
            w1 = max(-128, raw1 - raw2)
            w2 = max(-128, raw1 + raw2 - 256)
    elif mode == SpeedMode.MODE3:
        drive = unsigned_to_signed_byte(raw1)
        turn = unsigned_to_signed_byte(raw2)
        if drive >= 0:
            w1 = min(127, drive + turn)
            w2 = min(127, drive - turn)
        else:
            w1 = max(-128, drive - turn)
            w2 = max(-128, drive + turn)
    else:
        raise ValueError(f"Unknown speed mode {mode}")

    return w1 * constants.speed_to_mm_per_s, w2 * constants.speed_to_mm_per_s


def stop_speed(mode: int) -> int:
    """Raw register value that stops a wheel in the given mode."""
    return 128 if mode in (SpeedMode.MODE0, SpeedMode.MODE2) else 0


def wheel_encoder_deltas(
    v1: float,
    v2: float,
    t: float,
    constants: RobotConstants = DEFAULT_CONSTANTS,
) -> Tuple[int, int]:
    """Encoder counts travelled by each wheel in ``t`` seconds."""
    per_count = constants.mm_per_encoder_count
    return int(v1 * t / per_count), int(v2 * t / per_count)
