"""Deterministic point orderings used for wire numbering."""

from __future__ import annotations

from contracts import Line


def sort_right_to_left(line: Line) -> Line:
    """Return ``line`` with its points ordered by descending x.

    The sort is stable, so dots sharing an x coordinate keep their input
    order and sorting twice changes nothing.
    """
    return line.with_points(sorted(line.points, key=lambda dot: -dot.x))


def sort_points_by_distance_from_start_point(line: Line) -> Line:
    """Return ``line`` with its points ordered by ascending distance from its start point.

    Equal distances are ordered by original position.
    """
    start = line.start_point
    keyed = sorted(
        enumerate(line.points),
        key=lambda item: (start.distance_to(item[1]), item[0]),
    )
    return line.with_points([dot for _, dot in keyed])
