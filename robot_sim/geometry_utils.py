"""
Geometry utilities for the simulated robot world.

Provides point-segment distance (scalar and vectorized), circle-rectangle and
circle-segment tests, and polygon helpers used by obstacle collision checks.
All coordinates are millimeters.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple
import math

import numpy as np


Point = Tuple[float, float]
Segment = Tuple[float, float, float, float]

# Segments shorter than this are treated as points.
DEGENERATE_LENGTH = 1e-4


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def clamp(value: float, vmin: float, vmax: float) -> float:
    """Clamp value to [vmin, vmax]."""
    return max(vmin, min(vmax, value))


# ---------------------------------------------------------------------------
# Point-to-segment distance
# ---------------------------------------------------------------------------


def point_to_segment_distance(
    px: float,
    py: float,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
) -> Tuple[float, float, float]:
    """
    Distance from point to line segment, and closest point on segment.

    Returns
    -------
    (distance, closest_x, closest_y)
    """
    dx = x2 - x1
    dy = y2 - y1
    if abs(dx) < DEGENERATE_LENGTH and abs(dy) < DEGENERATE_LENGTH:
        return math.hypot(px - x1, py - y1), x1, y1
    t = ((px - x1) * dx + (py - y1) * dy) / (dx * dx + dy * dy)
    t = clamp(t, 0.0, 1.0)
    cx = x1 + t * dx
    cy = y1 + t * dy
    return math.hypot(px - cx, py - cy), cx, cy


def point_to_segments_distance(px: float, py: float, segments: np.ndarray) -> np.ndarray:
    """Distances from one point to many segments.

    Parameters
    ----------
    segments : np.ndarray
        Array of shape (n, 4) holding (x1, y1, x2, y2) rows.
    """
    segs = np.asarray(segments, dtype=float).reshape(-1, 4)
    x1, y1, x2, y2 = segs[:, 0], segs[:, 1], segs[:, 2], segs[:, 3]
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy
    degenerate = (np.abs(dx) < DEGENERATE_LENGTH) & (np.abs(dy) < DEGENERATE_LENGTH)
    safe = np.where(degenerate, 1.0, length_sq)
    t = ((px - x1) * dx + (py - y1) * dy) / safe
    t = np.where(degenerate, 0.0, np.clip(t, 0.0, 1.0))
    cx = x1 + t * dx
    cy = y1 + t * dy
    return np.hypot(px - cx, py - cy)


# ---------------------------------------------------------------------------
# Circle tests
# ---------------------------------------------------------------------------


def circle_segment_intersect(
    cx: float,
    cy: float,
    radius: float,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
) -> bool:
    """
    True if circle (cx, cy, radius) intersects line segment (x1,y1)-(x2,y2).
    """
    dist, _, _ = point_to_segment_distance(cx, cy, x1, y1, x2, y2)
    return dist <= radius


def circle_segments_intersect(cx: float, cy: float, radius: float, segments: np.ndarray) -> bool:
    """True if the circle touches any of the segments."""
    if len(segments) == 0:
        return False
    return bool(np.any(point_to_segments_distance(cx, cy, segments) <= radius))


def circle_rect_intersect(
    cx: float,
    cy: float,
    radius: float,
    x: float,
    y: float,
    width: float,
    height: float,
) -> bool:
    """
    True if circle intersects the filled axis-aligned rectangle (x, y, width, height).

    Half-extent test: reject when the centers are further apart than radius
    plus half extent on either axis, accept when the circle center projects
    inside the rectangle on either axis, otherwise compare the corner distance.
    """
    half_w = width / 2.0
    half_h = height / 2.0
    dx = abs(cx - x - half_w)
    dy = abs(cy - y - half_h)

    if dx > radius + half_w or dy > radius + half_h:
        return False
    if dx <= half_w or dy <= half_h:
        return True

    corner_sq = (dx - half_w) ** 2 + (dy - half_h) ** 2
    return corner_sq <= radius * radius


# ---------------------------------------------------------------------------
# Rectangle and polygon helpers
# ---------------------------------------------------------------------------


def rect_corners(x: float, y: float, width: float, height: float) -> List[Point]:
    """Corners of rectangle (x, y, width, height) in drawing order."""
    return [(x, y), (x, y + height), (x + width, y + height), (x + width, y)]


def polygon_segments(vertices: Sequence[Point], closed: bool = True) -> np.ndarray:
    """Edges of a polygon as an (n, 4) array of (x1, y1, x2, y2)."""
    pts = np.asarray(vertices, dtype=float).reshape(-1, 2)
    if len(pts) < 2:
        return np.empty((0, 4))
    starts = pts if closed else pts[:-1]
    ends = np.roll(pts, -1, axis=0) if closed else pts[1:]
    return np.hstack([starts, ends])


def point_in_polygon(px: float, py: float, vertices: Sequence[Point]) -> bool:
    """
    Ray-casting test: True if (px, py) is inside polygon (list of (x,y) in order).
    """
    n = len(vertices)
    if n < 3:
        return False
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if ((yi > py) != (yj > py)) and (
            px < (xj - xi) * (py - yi) / (yj - yi + 1e-10) + xi
        ):
            inside = not inside
        j = i
    return inside
