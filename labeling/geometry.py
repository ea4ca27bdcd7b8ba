"""Planar geometry helpers for candidate fiducial lines.

All functions are pure. Distances are in pixels unless a ``mm_per_pixel``
scale is passed. Orientations are in radians, folded into ``[0, pi)`` since a
line has no inherent direction.
"""

from __future__ import annotations

import math
from typing import Tuple

from contracts import Dot, Line

# Lines shorter than this (pixels) are treated as a single point.
DEGENERATE_LENGTH_PX = 1e-12


def _direction(line: Line) -> Tuple[float, float, float]:
    dx = line.end_point.x - line.start_point.x
    dy = line.end_point.y - line.start_point.y
    return dx, dy, math.hypot(dx, dy)


def compute_distance_point_line(dot: Dot, line: Line) -> float:
    """Perpendicular distance from ``dot`` to the infinite line through the line's endpoints.

    A zero-length line falls back to the distance between the dot and the
    line's start point.
    """
    dx, dy, length = _direction(line)
    px = dot.x - line.start_point.x
    py = dot.y - line.start_point.y
    if length <= DEGENERATE_LENGTH_PX:
        return math.hypot(px, py)
    return abs(dx * py - dy * px) / length


def compute_slope(line: Line) -> float:
    """Orientation of ``end_point - start_point`` relative to the image x-axis, in ``[0, pi)``."""
    dx, dy, length = _direction(line)
    if length <= DEGENERATE_LENGTH_PX:
        return 0.0
    theta = math.atan2(dy, dx) % math.pi
    if theta >= math.pi:
        # -tiny % pi rounds up to pi
        theta = 0.0
    return theta


def orientation_deviation(theta: float) -> float:
    """Unsigned angle between an orientation and the x-axis, in ``[0, pi/2]``."""
    theta = theta % math.pi
    return min(theta, math.pi - theta)


def angle_between(theta1: float, theta2: float) -> float:
    """Smallest angle between two undirected orientations, in ``[0, pi/2]``."""
    diff = abs(theta1 - theta2) % math.pi
    return min(diff, math.pi - diff)


def compute_shift(line1: Line, line2: Line, mm_per_pixel: float = 1.0) -> float:
    """Signed offset between the two midpoints along ``line1``'s direction.

    Uses ``line2``'s direction when ``line1`` is degenerate, and the plain
    midpoint distance when both are.
    """
    mid1 = line1.midpoint
    mid2 = line2.midpoint
    offset_x = mid2[0] - mid1[0]
    offset_y = mid2[1] - mid1[1]

    dx, dy, length = _direction(line1)
    if length <= DEGENERATE_LENGTH_PX:
        dx, dy, length = _direction(line2)
    if length <= DEGENERATE_LENGTH_PX:
        return math.hypot(offset_x, offset_y) * mm_per_pixel

    projection = (offset_x * dx + offset_y * dy) / length
    return projection * mm_per_pixel


def line_pair_distance(line1: Line, line2: Line) -> float:
    """Symmetric distance between two lines: mean of each midpoint's distance to the other line."""
    mid1 = Dot(*line1.midpoint)
    mid2 = Dot(*line2.midpoint)
    return (compute_distance_point_line(mid2, line1) + compute_distance_point_line(mid1, line2)) / 2.0
