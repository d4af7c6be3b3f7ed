"""
Top-level package for the 2D differential-drive robot simulator.

Components:
- kinematics: pose, forward kinematics, speed-mode decoding, encoder deltas
- geometry_utils: point/segment/rectangle/polygon helpers
- world: obstacles, map files, collision checking
- simulator: in-process MD49 motor driver speaking the register protocol
- runner: command-script runner against the simulator
"""

from .kinematics import Pose, integrate_pose, motor_speed_to_real_speed
from .world import World, Obstacle, ObstacleType
from .simulator import SimulatedMotorDriver

__all__ = [
    "Pose",
    "integrate_pose",
    "motor_speed_to_real_speed",
    "World",
    "Obstacle",
    "ObstacleType",
    "SimulatedMotorDriver",
]
