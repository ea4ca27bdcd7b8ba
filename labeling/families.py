"""Result builders, one per phantom family.

Each family turns the matched lines of a template, given top to bottom,
into labeled dots. The wire numbering is what ties an image dot to a
physical wire, so each family keeps its own convention.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Sequence

from contracts import LabelingResult, Line
from labeling.ordering import sort_points_by_distance_from_start_point, sort_right_to_left
from labeling.templates import CIRS_LINE_COUNT, FAMILY_CIRS, FAMILY_NWIRES, PatternTemplate


def _label_line(line: Line, pattern_id: int) -> List[LabelingResult]:
    return [
        LabelingResult(pattern_id=pattern_id, wire_id=wire_id, x=dot.x, y=dot.y)
        for wire_id, dot in enumerate(line.points)
    ]


class PatternFamily(ABC):
    """Builds labeling results for one phantom topology."""

    name: str = ""

    @abstractmethod
    def build_results(self, template: PatternTemplate, lines: Sequence[Line]) -> List[LabelingResult]:
        """Label every dot of ``lines``, which are ordered top to bottom."""

    def _check_line_count(self, template: PatternTemplate, lines: Sequence[Line]) -> None:
        if len(lines) != template.line_count:
            raise ValueError(
                f"{self.name} pattern '{template.name}' needs {template.line_count} lines, got {len(lines)}"
            )


class NWiresFamily(PatternFamily):
    """N-wire phantoms: one line per N-wire, wires numbered from the rightmost dot."""

    name = FAMILY_NWIRES

    def build_results(self, template: PatternTemplate, lines: Sequence[Line]) -> List[LabelingResult]:
        self._check_line_count(template, lines)
        results: List[LabelingResult] = []
        for definition, line in zip(template.lines, lines):
            results.extend(_label_line(sort_right_to_left(line), definition.pattern_id))
        return results


class CirsFamily(PatternFamily):
    """CIRS phantom model 45: left-most, diagonal and right-most wire lines.

    The left and right lines are numbered along the wire starting at the
    line's start point. The diagonal's wire 0 is its rightmost dot.
    """

    name = FAMILY_CIRS

    def build_results(self, template: PatternTemplate, lines: Sequence[Line]) -> List[LabelingResult]:
        if len(lines) != CIRS_LINE_COUNT:
            raise ValueError(f"CIRS pattern '{template.name}' needs {CIRS_LINE_COUNT} lines, got {len(lines)}")
        left, diagonal, right = lines
        left_def, diagonal_def, right_def = template.lines
        return (
            _label_line(sort_points_by_distance_from_start_point(left), left_def.pattern_id)
            + _label_line(sort_right_to_left(diagonal), diagonal_def.pattern_id)
            + _label_line(sort_points_by_distance_from_start_point(right), right_def.pattern_id)
        )


FAMILIES: Dict[str, Callable[[], PatternFamily]] = {
    FAMILY_NWIRES: NWiresFamily,
    FAMILY_CIRS: CirsFamily,
}


def get_family(name: str) -> PatternFamily:
    try:
        return FAMILIES[name]()
    except KeyError:
        raise ValueError(f"Unknown pattern family: {name}")
