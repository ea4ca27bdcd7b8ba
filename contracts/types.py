"""Core data contracts for dots, lines and labeling results."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Dot:
    x: float
    y: float
    intensity: float = 0.0
    radius: float = 0.0

    def distance_to(self, other: "Dot") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Line:
    """Dots believed to lie on the projection of one calibration wire group.

    ``start_point`` and ``end_point`` span the line. When the line finder does
    not supply them, the first dot is the start point and the dot farthest
    from it is the end point.
    """

    points: Tuple[Dot, ...]
    start_point: Optional[Dot] = None
    end_point: Optional[Dot] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))
        if not self.points:
            if self.start_point is None or self.end_point is None:
                raise ValueError("Line without points needs explicit start and end points")
            return
        if self.start_point is None:
            object.__setattr__(self, "start_point", self.points[0])
        if self.end_point is None:
            start = self.start_point
            farthest = max(self.points, key=lambda dot: start.distance_to(dot))
            object.__setattr__(self, "end_point", farthest)

    @classmethod
    def from_indices(
        cls,
        dots: Sequence[Dot],
        indices: Sequence[int],
        start_index: Optional[int] = None,
        end_index: Optional[int] = None,
    ) -> "Line":
        """Build a line from indices into a frame's dots vector.

        Raises:
            IndexError: If an index is negative or past the end of ``dots``
        """
        for index in (*indices, start_index, end_index):
            if index is not None and not 0 <= index < len(dots):
                raise IndexError(f"dot index {index} out of range for {len(dots)} dots")
        points = tuple(dots[i] for i in indices)
        start = dots[start_index] if start_index is not None else None
        end = dots[end_index] if end_index is not None else None
        return cls(points=points, start_point=start, end_point=end)

    @property
    def midpoint(self) -> Tuple[float, float]:
        return (
            (self.start_point.x + self.end_point.x) / 2.0,
            (self.start_point.y + self.end_point.y) / 2.0,
        )

    @property
    def intensity(self) -> float:
        return float(sum(dot.intensity for dot in self.points))

    def with_points(self, points: Sequence[Dot]) -> "Line":
        """Same line with its members re-ordered."""
        return Line(points=tuple(points), start_point=self.start_point, end_point=self.end_point)

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class LabelingResult:
    pattern_id: int
    wire_id: int
    x: float
    y: float


@dataclass(frozen=True)
class LabelingOutcome:
    """Immutable outcome of matching one frame against the configured patterns."""

    dots_found: bool
    results: Tuple[LabelingResult, ...] = ()
    lines: Tuple[Line, ...] = ()
    pattern_name: Optional[str] = None
    pattern_intensity: float = -1.0
    deviation: Optional[float] = None

    @classmethod
    def not_found(cls) -> "LabelingOutcome":
        return cls(dots_found=False)

    @property
    def found_dots_coordinate_values(self) -> List[List[float]]:
        return [[result.x, result.y] for result in self.results]

    def to_dict(self) -> dict:
        return {
            "dots_found": self.dots_found,
            "pattern_name": self.pattern_name,
            "pattern_intensity": self.pattern_intensity,
            "deviation": self.deviation,
            "results": [
                {
                    "pattern_id": result.pattern_id,
                    "wire_id": result.wire_id,
                    "x": result.x,
                    "y": result.y,
                }
                for result in self.results
            ],
        }
