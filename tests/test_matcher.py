"""Tests for pattern matching over candidate lines."""

from __future__ import annotations

import math

import pytest

from contracts import Dot, Line
from labeling.matcher import FidLabeling, canonical_order
from labeling.templates import (
    LabelingTolerances,
    LineDefinition,
    LinePairBounds,
    PatternTemplate,
    PatternTemplateStore,
)

SPACING_MM_PER_PIXEL = 0.5


def _horizontal(y: float, xs=(100.0, 150.0, 200.0), intensity: float = 1.0) -> Line:
    return Line(points=[Dot(x, y, intensity=intensity) for x in xs])


def _tilted(cx: float, cy: float, theta: float, half_length: float = 40.0) -> Line:
    return Line(
        points=[
            Dot(cx + t * math.cos(theta), cy + t * math.sin(theta), intensity=1.0)
            for t in (-half_length, 0.0, half_length)
        ]
    )


def _store(templates, **tolerances) -> PatternTemplateStore:
    store = PatternTemplateStore()
    store.set_patterns(templates)
    store.set_approximate_spacing_mm_per_pixel(SPACING_MM_PER_PIXEL)
    store.tolerances = LabelingTolerances(**tolerances)
    return store


def _double_n(min_distance_mm: float = 14.0, max_distance_mm: float = 16.0) -> PatternTemplate:
    return PatternTemplate(
        name="double-n",
        family="nwires",
        lines=(LineDefinition(pattern_id=0, wire_count=3), LineDefinition(pattern_id=1, wire_count=3)),
        pairs=(LinePairBounds(first=0, second=1, min_distance_mm=min_distance_mm, max_distance_mm=max_distance_mm),),
    )


def _cirs() -> PatternTemplate:
    return PatternTemplate(
        name="cirs",
        family="cirs",
        lines=tuple(LineDefinition(pattern_id=k, wire_count=3) for k in range(3)),
        pairs=(
            LinePairBounds(first=0, second=1, min_distance_mm=14.0, max_distance_mm=16.0),
            LinePairBounds(first=0, second=2, min_distance_mm=29.0, max_distance_mm=31.0),
            LinePairBounds(first=1, second=2, min_distance_mm=14.0, max_distance_mm=16.0),
        ),
    )


@pytest.fixture
def cirs_labeling() -> FidLabeling:
    store = _store(
        [_cirs()],
        max_angle_difference_rad=math.radians(10),
        angle_tolerance_rad=0.05,
        min_theta_rad=0.0,
        max_theta_rad=0.05,
    )
    return FidLabeling(store)


@pytest.fixture
def boundary_labeling() -> FidLabeling:
    return FidLabeling(_store([_double_n()], max_line_shift_mm=2.0))


def test_cirs_scenario_is_recognized(cirs_labeling):
    lines = [_tilted(200.0, 100.0, 0.01), _tilted(200.0, 130.0, 0.02), _tilted(200.0, 160.0, -0.01)]

    outcome = cirs_labeling.find_pattern([lines])

    assert outcome.dots_found
    assert outcome.pattern_name == "cirs"
    assert len(outcome.results) == sum(len(line) for line in lines)
    assert len({(r.pattern_id, r.wire_id) for r in outcome.results}) == 9
    # left-most line numbered from its start point, diagonal from its rightmost dot
    first_left = outcome.results[0]
    assert (first_left.pattern_id, first_left.wire_id) == (0, 0)
    assert first_left.x == pytest.approx(200.0 - 40.0 * math.cos(0.01))
    first_diagonal = outcome.results[3]
    assert (first_diagonal.pattern_id, first_diagonal.wire_id) == (1, 0)
    assert first_diagonal.x == pytest.approx(200.0 + 40.0 * math.cos(0.02))
    assert cirs_labeling.dots_found
    assert cirs_labeling.pattern_intensity == 9.0


def test_cirs_degenerate_placement_is_rejected(cirs_labeling):
    lines = [_tilted(200.0, 100.0, 0.01), _tilted(200.0, 160.0, 0.02), _tilted(200.0, 160.0, -0.01)]

    outcome = cirs_labeling.find_pattern([lines])

    assert not outcome.dots_found
    assert outcome.results == ()
    assert cirs_labeling.results == []


def test_line_order_does_not_matter(cirs_labeling):
    lines = [_tilted(200.0, 160.0, -0.01), _tilted(200.0, 100.0, 0.01), _tilted(200.0, 130.0, 0.02)]

    outcome = cirs_labeling.find_pattern([lines])

    assert outcome.dots_found
    assert [line.points for line in outcome.lines] == [line.points for line in canonical_order(lines)]


def test_clear_resets_state(cirs_labeling):
    lines = [_tilted(200.0, 100.0, 0.01), _tilted(200.0, 130.0, 0.02), _tilted(200.0, 160.0, -0.01)]
    cirs_labeling.set_dots_vector([dot for line in lines for dot in line.points])
    cirs_labeling.set_lines_vector([lines])
    assert cirs_labeling.find_pattern().dots_found

    cirs_labeling.clear()

    assert not cirs_labeling.dots_found
    assert cirs_labeling.results == []
    assert cirs_labeling.found_lines == []
    assert cirs_labeling.found_dots_coordinate_values == []
    assert cirs_labeling.dots_vector == []
    assert cirs_labeling.lines_vector == []
    assert not cirs_labeling.find_pattern().dots_found
    assert cirs_labeling.store.templates


def test_find_pattern_resets_previous_frame(cirs_labeling):
    good = [_tilted(200.0, 100.0, 0.01), _tilted(200.0, 130.0, 0.02), _tilted(200.0, 160.0, -0.01)]
    assert cirs_labeling.find_pattern([good]).dots_found

    outcome = cirs_labeling.find_pattern([good[:2]])

    assert not outcome.dots_found
    assert cirs_labeling.results == []


def test_distance_bounds_are_inclusive(boundary_labeling):
    # 32 px * 0.5 mm/px = 16 mm, 28 px = 14 mm
    assert boundary_labeling.find_pattern([[_horizontal(100.0), _horizontal(132.0)]]).dots_found
    assert boundary_labeling.find_pattern([[_horizontal(100.0), _horizontal(128.0)]]).dots_found
    assert not boundary_labeling.find_pattern([[_horizontal(100.0), _horizontal(132.002)]]).dots_found
    assert not boundary_labeling.find_pattern([[_horizontal(100.0), _horizontal(127.998)]]).dots_found


def test_distance_error_percent_widens_bounds():
    labeling = FidLabeling(_store([_double_n()], max_line_pair_distance_error_percent=10.0))

    # 17.5 mm is inside [14 * 0.9, 16 * 1.1]
    assert labeling.find_pattern([[_horizontal(100.0), _horizontal(135.0)]]).dots_found
    assert not labeling.find_pattern([[_horizontal(100.0), _horizontal(136.0)]]).dots_found


def test_shift_bound_is_inclusive(boundary_labeling):
    top = _horizontal(100.0)
    at_bound = _horizontal(130.0, xs=(104.0, 154.0, 204.0))
    beyond = _horizontal(130.0, xs=(104.002, 154.002, 204.002))

    assert boundary_labeling.find_pattern([[top, at_bound]]).dots_found
    assert not boundary_labeling.find_pattern([[top, beyond]]).dots_found


def test_angle_tolerance_is_inclusive():
    top = _horizontal(100.0)
    tilted = Line(points=[Dot(100.0, 130.0), Dot(150.0, 130.5), Dot(200.0, 131.0)])
    angle = math.atan2(1.0, 100.0)

    at_bound = FidLabeling(_store([_double_n()], angle_tolerance_rad=angle))
    beyond = FidLabeling(_store([_double_n()], angle_tolerance_rad=angle - 1e-6))

    assert at_bound.find_pattern([[top, tilted]]).dots_found
    assert not beyond.find_pattern([[top, tilted]]).dots_found


def test_max_angle_difference_caps_pair_angle():
    top = _horizontal(100.0)
    tilted = Line(points=[Dot(100.0, 130.0), Dot(150.0, 130.5), Dot(200.0, 131.0)])
    labeling = FidLabeling(
        _store([_double_n()], angle_tolerance_rad=0.1, max_angle_difference_rad=0.005)
    )

    assert not labeling.find_pattern([[top, tilted]]).dots_found


def test_theta_bounds_reject_steep_lines():
    labeling = FidLabeling(_store([_double_n()], angle_tolerance_rad=0.1, max_theta_rad=0.05))
    steep = [_tilted(200.0, 100.0, 0.08), _tilted(200.0, 130.0, 0.08)]
    shallow = [_tilted(200.0, 100.0, -0.03), _tilted(200.0, 130.0, -0.03)]

    assert not labeling.find_pattern([steep]).dots_found
    assert labeling.find_pattern([shallow]).dots_found


def test_wire_count_must_match_template(boundary_labeling):
    four_dots = _horizontal(130.0, xs=(100.0, 130.0, 160.0, 200.0))

    assert not boundary_labeling.find_pattern([[_horizontal(100.0), four_dots]]).dots_found


def test_lines_outside_frame_are_ignored(boundary_labeling):
    boundary_labeling.store.set_frame_size((180, 480))

    assert not boundary_labeling.find_pattern([[_horizontal(100.0), _horizontal(130.0)]]).dots_found

    boundary_labeling.store.set_frame_size((640, 480))
    assert boundary_labeling.find_pattern([[_horizontal(100.0), _horizontal(130.0)]]).dots_found


def test_closest_combination_wins(boundary_labeling):
    lines = [_horizontal(100.0), _horizontal(131.0), _horizontal(130.0)]

    outcome = boundary_labeling.find_pattern([lines])

    assert outcome.dots_found
    assert [line.start_point.y for line in outcome.lines] == [100.0, 130.0]
    assert outcome.deviation == pytest.approx(0.0)


def test_equal_fit_prefers_higher_intensity(boundary_labeling):
    dim_top = _horizontal(100.0, intensity=1.0)
    dim_middle = _horizontal(130.0, intensity=1.0)
    bright_bottom = _horizontal(160.0, intensity=5.0)

    outcome = boundary_labeling.find_pattern([[dim_top, dim_middle, bright_bottom]])

    assert [line.start_point.y for line in outcome.lines] == [130.0, 160.0]
    assert outcome.pattern_intensity == 18.0


def test_equal_fit_and_intensity_prefers_first_enumerated(boundary_labeling):
    lines = [_horizontal(100.0), _horizontal(130.0), _horizontal(160.0)]

    outcome = boundary_labeling.find_pattern([lines])

    assert [line.start_point.y for line in outcome.lines] == [100.0, 130.0]


def test_later_grouping_can_match(boundary_labeling):
    unmatched = [_horizontal(100.0), _horizontal(200.0)]
    matched = [_horizontal(300.0), _horizontal(330.0)]

    outcome = boundary_labeling.find_pattern([unmatched, matched])

    assert outcome.dots_found
    assert [line.start_point.y for line in outcome.lines] == [300.0, 330.0]


def test_nwires_results_follow_line_order(boundary_labeling):
    outcome = boundary_labeling.find_pattern([[_horizontal(130.0), _horizontal(100.0)]])

    assert [(r.pattern_id, r.wire_id, r.x, r.y) for r in outcome.results] == [
        (0, 0, 200.0, 100.0),
        (0, 1, 150.0, 100.0),
        (0, 2, 100.0, 100.0),
        (1, 0, 200.0, 130.0),
        (1, 1, 150.0, 130.0),
        (1, 2, 100.0, 130.0),
    ]
    assert outcome.found_dots_coordinate_values[0] == [200.0, 100.0]


def test_no_lines_and_unconfigured_engine_find_nothing(boundary_labeling):
    assert not boundary_labeling.find_pattern([]).dots_found
    assert not boundary_labeling.find_pattern([[]]).dots_found
    assert not FidLabeling().find_pattern([[_horizontal(100.0), _horizontal(130.0)]]).dots_found


def test_degenerate_lines_do_not_raise(boundary_labeling):
    collapsed = Line(points=[Dot(150.0, 100.0)] * 3)

    outcome = boundary_labeling.find_pattern([[collapsed, _horizontal(130.0)]])

    assert outcome.dots_found
    assert len(outcome.results) == 6


def test_template_matched_by_line_count():
    labeling = FidLabeling(
        _store(
            [_double_n(), _cirs()],
            max_angle_difference_rad=math.radians(10),
            angle_tolerance_rad=0.05,
            max_theta_rad=0.05,
        )
    )

    outcome = labeling.find_pattern([[_horizontal(100.0), _horizontal(130.0), _horizontal(160.0)]])

    # both templates fit exactly, the three-line match labels more dots
    assert outcome.pattern_name == "cirs"
    assert len(outcome.results) == 9


def test_full_three_line_match_beats_closer_two_line_subset():
    labeling = FidLabeling(
        _store(
            [_double_n(), _cirs()],
            max_angle_difference_rad=math.radians(10),
            angle_tolerance_rad=0.05,
            max_theta_rad=0.05,
        )
    )
    # 15.2 mm and 14.8 mm between neighbours, 30 mm between the outer lines
    lines = [_horizontal(100.0), _horizontal(130.4), _horizontal(160.0)]

    outcome = labeling.find_pattern([lines])

    assert outcome.pattern_name == "cirs"
    assert len(outcome.results) == 9
    assert outcome.deviation == pytest.approx(0.4 / 3)


def test_deviation_terms_share_one_scale():
    angle = math.atan2(1.0, 100.0)
    labeling = FidLabeling(_store([_double_n()], angle_tolerance_rad=angle))
    top = _horizontal(100.0)
    tilted = Line(points=[Dot(100.0, 129.5), Dot(150.0, 130.0), Dot(200.0, 130.5)])

    # angle at the edge of its window weighs as much as a distance at its bound
    assert labeling.score_combination(_double_n(), [top, tilted]) == pytest.approx(1.0, abs=1e-3)
    assert labeling.score_combination(_double_n(), [top, _horizontal(132.0)]) == pytest.approx(1.0)
    assert labeling.score_combination(_double_n(), [top, _horizontal(130.0)]) == pytest.approx(0.0)
