"""Recognize configured phantom patterns among candidate fiducial lines.

The line finder proposes one or more groupings of dots into lines. For every
grouping and every template, each combination of lines of the template's
size is checked against the template's geometry: line orientation, angle,
distance and shift between every pair of lines. Among the combinations that
pass, the template labeling the most dots wins, then the combination closest
to the template centre values, and its dots are labeled by the template's
family.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from contracts import Dot, LabelingOutcome, LabelingResult, Line
from labeling.families import get_family
from labeling.geometry import (
    angle_between,
    compute_shift,
    compute_slope,
    line_pair_distance,
    orientation_deviation,
)
from labeling.templates import PatternTemplate, PatternTemplateStore
from log_config.logger import get_logger

logger = get_logger(__name__)

# Slack on inclusive bounds so values computed exactly at a bound pass.
BOUND_EPSILON = 1e-9
# Deviation is rounded before ranking so float noise cannot reorder candidates.
DEVIATION_DECIMALS = 9


def _within(value: float, low: float, high: float) -> bool:
    return low - BOUND_EPSILON <= value <= high + BOUND_EPSILON


def _normalized_deviation(value: float, center: float, low: float, high: float) -> float:
    """Distance of ``value`` from ``center`` in units of the reach to the farther window edge.

    Every value inside ``[low, high]`` scores in ``[0, 1]`` whether or not the
    centre sits in the middle of the window.
    """
    reach = max(center - low, high - center)
    if reach <= 0.0:
        return 0.0
    return abs(value - center) / reach


def canonical_order(lines: Iterable[Line]) -> List[Line]:
    """Order lines top to bottom by start point, then left to right, then input position."""
    indexed = sorted(
        enumerate(lines),
        key=lambda item: (item[1].start_point.y, item[1].start_point.x, item[0]),
    )
    return [line for _, line in indexed]


@dataclass(frozen=True)
class MatchCandidate:
    template: PatternTemplate
    lines: Tuple[Line, ...]
    deviation: float
    intensity: float
    order: Tuple[int, int, Tuple[int, ...]]

    @property
    def rank_key(self) -> tuple:
        # Templates labeling more dots rank first, so a full match beats any of its subsets.
        return (
            -self.template.point_count,
            round(self.deviation, DEVIATION_DECIMALS),
            -self.intensity,
            self.order,
        )


class FidLabeling:
    """Identifies phantom patterns among candidate lines and labels their dots.

    ``find_pattern`` returns an immutable :class:`LabelingOutcome`. The last
    outcome is also kept on the instance for callers that poll
    ``dots_found``/``results``; ``clear`` drops it together with the frame
    input. Instances are not thread-safe.
    """

    def __init__(self, store: Optional[PatternTemplateStore] = None) -> None:
        self.store = store if store is not None else PatternTemplateStore()
        self._dots: List[Dot] = []
        self._lines_vector: List[List[Line]] = []
        self._outcome = LabelingOutcome.not_found()

    def read_configuration(self, tree, min_theta_rad: Optional[float] = None, max_theta_rad: Optional[float] = None) -> None:
        self.store.read_configuration(tree, min_theta_rad=min_theta_rad, max_theta_rad=max_theta_rad)

    # Frame input

    def set_dots_vector(self, dots: Sequence[Dot]) -> None:
        self._dots = list(dots)

    @property
    def dots_vector(self) -> List[Dot]:
        return list(self._dots)

    def set_lines_vector(self, lines_vector: Sequence[Sequence[Line]]) -> None:
        self._lines_vector = [list(grouping) for grouping in lines_vector]

    @property
    def lines_vector(self) -> List[List[Line]]:
        return [list(grouping) for grouping in self._lines_vector]

    # Last outcome

    @property
    def outcome(self) -> LabelingOutcome:
        return self._outcome

    @property
    def dots_found(self) -> bool:
        return self._outcome.dots_found

    @property
    def results(self) -> List[LabelingResult]:
        return list(self._outcome.results)

    @property
    def found_lines(self) -> List[Line]:
        return list(self._outcome.lines)

    @property
    def pattern_intensity(self) -> float:
        return self._outcome.pattern_intensity

    @property
    def found_dots_coordinate_values(self) -> List[List[float]]:
        return self._outcome.found_dots_coordinate_values

    def clear(self) -> None:
        """Drop the frame input and the last outcome. Templates and frame geometry are kept."""
        self._dots = []
        self._lines_vector = []
        self._outcome = LabelingOutcome.not_found()

    # Matching

    def find_pattern(self, lines_vector: Optional[Sequence[Sequence[Line]]] = None) -> LabelingOutcome:
        """Match the current (or given) line groupings against every template.

        A frame without a recognizable pattern is a normal outcome: the
        returned outcome has ``dots_found`` false and no results.
        """
        if lines_vector is not None:
            self.set_lines_vector(lines_vector)
        self._outcome = LabelingOutcome.not_found()

        if not self.store.configured:
            logger.warning("find_pattern called before labeling was configured")
            return self._outcome

        candidates = list(self.iter_candidates())
        if not candidates:
            logger.debug(f"No pattern found among {sum(len(g) for g in self._lines_vector)} candidate line(s)")
            return self._outcome

        winner = min(candidates, key=lambda candidate: candidate.rank_key)
        family = get_family(winner.template.family)
        results = tuple(family.build_results(winner.template, winner.lines))

        self._outcome = LabelingOutcome(
            dots_found=True,
            results=results,
            lines=winner.lines,
            pattern_name=winner.template.name,
            pattern_intensity=winner.intensity,
            deviation=winner.deviation,
        )
        logger.debug(
            f"Pattern '{winner.template.name}' found: {len(results)} dots labeled, "
            f"deviation {winner.deviation:.4f}, {len(candidates)} valid combination(s)"
        )
        return self._outcome

    def iter_candidates(self) -> Iterator[MatchCandidate]:
        """Yield every line combination that satisfies its template, in enumeration order."""
        for grouping_index, grouping in enumerate(self._lines_vector):
            for template_index, template in enumerate(self.store.templates):
                if len(grouping) < template.line_count:
                    continue
                for combination in itertools.combinations(range(len(grouping)), template.line_count):
                    lines = tuple(canonical_order(grouping[i] for i in combination))
                    deviation = self.score_combination(template, lines)
                    if deviation is None:
                        continue
                    yield MatchCandidate(
                        template=template,
                        lines=lines,
                        deviation=deviation,
                        intensity=sum(line.intensity for line in lines),
                        order=(grouping_index, template_index, combination),
                    )

    def score_combination(self, template: PatternTemplate, lines: Sequence[Line]) -> Optional[float]:
        """Mean normalized deviation per line pair of canonically ordered ``lines`` from ``template``.

        Returns None if any tolerance is violated.
        """
        tolerances = self.store.tolerances
        spacing = self.store.approximate_spacing_mm_per_pixel

        for definition, line in zip(template.lines, lines):
            if len(line.points) != definition.wire_count:
                return None
            if not self._inside_frame(line):
                return None

        thetas = [compute_slope(line) for line in lines]
        for theta in thetas:
            if not _within(orientation_deviation(theta), tolerances.min_theta_rad, tolerances.max_theta_rad):
                return None

        total = 0.0
        for pair in template.pairs:
            first, second = lines[pair.first], lines[pair.second]

            angle = angle_between(thetas[pair.first], thetas[pair.second])
            angle_low, angle_high = pair.angle_window(tolerances.angle_tolerance_rad)
            angle_high = min(angle_high, tolerances.max_angle_difference_rad)
            if not _within(angle, angle_low, angle_high):
                return None

            distance_mm = line_pair_distance(first, second) * spacing
            distance_low, distance_high = pair.distance_window(tolerances.max_line_pair_distance_error_percent)
            if not _within(distance_mm, distance_low, distance_high):
                return None

            shift_mm = abs(compute_shift(first, second, spacing))
            if not _within(shift_mm, 0.0, tolerances.max_line_shift_mm):
                return None

            total += _normalized_deviation(
                distance_mm, (pair.min_distance_mm + pair.max_distance_mm) / 2.0, distance_low, distance_high
            )
            total += _normalized_deviation(
                angle, (pair.min_angle_rad + pair.max_angle_rad) / 2.0, angle_low, angle_high
            )
            total += _normalized_deviation(shift_mm, 0.0, -tolerances.max_line_shift_mm, tolerances.max_line_shift_mm)
        return total / len(template.pairs) if template.pairs else 0.0

    def _inside_frame(self, line: Line) -> bool:
        width, height = self.store.frame_size
        if width <= 0 or height <= 0:
            return True
        return all(0.0 <= dot.x < width and 0.0 <= dot.y < height for dot in line.points)
