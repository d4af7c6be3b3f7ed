from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import json
import logging

import numpy as np

from robot.units import ROBOT_RADIUS_MM
from .geometry_utils import (
    circle_rect_intersect,
    circle_segments_intersect,
    point_to_segments_distance,
    polygon_segments,
    rect_corners,
)


logger = logging.getLogger(__name__)

DEFAULT_GROUND_WIDTH = 5000
DEFAULT_GROUND_HEIGHT = 5000
DEFAULT_BORDER_WIDTH = 4


class ObstacleType(Enum):
    RECTANGLE_BORDER = "rectangle_border"
    RECTANGLE_FILLED = "rectangle_filled"
    POLYGON = "polygon"


@dataclass(frozen=True)
class Obstacle:
    """Static obstacle in world coordinates (millimeters).

    Attributes
    ----------
    type : ObstacleType
        Filled rectangle, rectangle border or polygon border.
    rect : tuple[float, float, float, float]
        (x, y, width, height) with (x, y) the minimum corner. Unused for polygons.
    points : tuple[tuple[float, float], ...]
        Polygon vertices in order. Empty for rectangles.
    border_width : int
        Drawn border width; collision tests treat borders as zero-width lines.
    """

    type: ObstacleType
    rect: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    points: Tuple[Tuple[float, float], ...] = ()
    border_width: int = DEFAULT_BORDER_WIDTH

    @classmethod
    def filled(cls, x: float, y: float, width: float, height: float) -> "Obstacle":
        return cls(ObstacleType.RECTANGLE_FILLED, (float(x), float(y), float(width), float(height)))

    @classmethod
    def border(
        cls, x: float, y: float, width: float, height: float, border_width: int = DEFAULT_BORDER_WIDTH
    ) -> "Obstacle":
        return cls(
            ObstacleType.RECTANGLE_BORDER,
            (float(x), float(y), float(width), float(height)),
            border_width=border_width,
        )

    @classmethod
    def polygon(
        cls, points: Sequence[Tuple[float, float]], border_width: int = DEFAULT_BORDER_WIDTH
    ) -> "Obstacle":
        return cls(
            ObstacleType.POLYGON,
            points=tuple((float(px), float(py)) for px, py in points),
            border_width=border_width,
        )

    @property
    def is_rectangle(self) -> bool:
        return self.type in (ObstacleType.RECTANGLE_FILLED, ObstacleType.RECTANGLE_BORDER)

    def vertices(self) -> List[Tuple[float, float]]:
        if self.is_rectangle:
            return rect_corners(*self.rect)
        return list(self.points)

    def segments(self) -> np.ndarray:
        """Border edges as an (n, 4) array of (x1, y1, x2, y2)."""
        return polygon_segments(self.vertices(), closed=True)

    def border_distance(self, x: float, y: float) -> float:
        """Shortest distance from a point to the obstacle's outline."""
        segs = self.segments()
        if len(segs) == 0:
            return float("inf")
        return float(np.min(point_to_segments_distance(x, y, segs)))

    def intersects(self, cx: float, cy: float, radius: float) -> bool:
        """True if a circle touches the obstacle.

        Only rectangles are tested; polygons always report False.
        """
        if self.type is ObstacleType.RECTANGLE_FILLED:
            return circle_rect_intersect(cx, cy, radius, *self.rect)
        if self.type is ObstacleType.RECTANGLE_BORDER:
            return circle_segments_intersect(cx, cy, radius, self.segments())
        return False

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        if self.type is ObstacleType.POLYGON:
            return {
                "type": self.type.value,
                "points": [list(p) for p in self.points],
                "border_width": self.border_width,
            }
        x, y, w, h = self.rect
        data: Dict[str, Any] = {"type": self.type.value, "x": x, "y": y, "width": w, "height": h}
        if self.type is ObstacleType.RECTANGLE_BORDER:
            data["border_width"] = self.border_width
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Obstacle":
        kind = ObstacleType(data.get("type", ObstacleType.RECTANGLE_FILLED.value))
        border_width = int(data.get("border_width", DEFAULT_BORDER_WIDTH))
        if kind is ObstacleType.POLYGON:
            return cls.polygon([(p[0], p[1]) for p in data["points"]], border_width)
        x, y = float(data["x"]), float(data["y"])
        w, h = float(data["width"]), float(data["height"])
        if kind is ObstacleType.RECTANGLE_BORDER:
            return cls.border(x, y, w, h, border_width)
        return cls.filled(x, y, w, h)


def intersects(obstacle: Obstacle, cx: float, cy: float, radius: float) -> bool:
    """Circle-obstacle collision test."""
    return obstacle.intersects(cx, cy, radius)


class World:
    """Ground area with static obstacles.

    Parameters
    ----------
    width : float
        Ground width in millimeters.
    height : float
        Ground height in millimeters.
    obstacles : list[Obstacle]
        Initial obstacle list.
    """

    def __init__(
        self,
        width: float = DEFAULT_GROUND_WIDTH,
        height: float = DEFAULT_GROUND_HEIGHT,
        obstacles: Optional[List[Obstacle]] = None,
    ) -> None:
        self.width = float(width)
        self.height = float(height)
        self.obstacles: List[Obstacle] = list(obstacles) if obstacles is not None else []

    # ------------------------------------------------------------------
    # Map loading
    # ------------------------------------------------------------------
    @classmethod
    def from_map_dict(cls, data: Dict[str, Any]) -> "World":
        """Create world from a dict describing the ground and obstacles."""
        obstacles = [Obstacle.from_dict(o) for o in data.get("obstacles", [])]
        return cls(
            width=float(data.get("width", DEFAULT_GROUND_WIDTH)),
            height=float(data.get("height", DEFAULT_GROUND_HEIGHT)),
            obstacles=obstacles,
        )

    @classmethod
    def from_map_file(cls, path: str) -> "World":
        """Create world from a JSON map file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        world = cls.from_map_dict(data)
        logger.info("Loaded %d obstacle(s) from %s", len(world.obstacles), path)
        return world

    def to_dict(self) -> Dict[str, Any]:
        """Serialize world description to a Python dict."""
        return {
            "width": self.width,
            "height": self.height,
            "obstacles": [o.to_dict() for o in self.obstacles],
        }

    def save_map_file(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def add_obstacle(self, obstacle: Obstacle) -> None:
        """Add a single obstacle."""
        self.obstacles.append(obstacle)

    def clear_obstacles(self) -> None:
        """Remove all obstacles."""
        self.obstacles.clear()

    # ------------------------------------------------------------------
    # Collision detection
    # ------------------------------------------------------------------
    def colliding_obstacles(
        self, x: float, y: float, radius: float = ROBOT_RADIUS_MM
    ) -> List[Obstacle]:
        """Obstacles a circular robot at (x, y) currently touches."""
        return [o for o in self.obstacles if o.intersects(x, y, radius)]

    def check_collision(self, x: float, y: float, radius: float = ROBOT_RADIUS_MM) -> bool:
        """Return True if a circular robot collides with any obstacle."""
        return any(o.intersects(x, y, radius) for o in self.obstacles)
