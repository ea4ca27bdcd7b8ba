"""Pattern templates and the tolerances used to match them.

A template describes one phantom arrangement as seen in the image plane: how
many lines it produces, how many wires each line crosses, and the allowed
distance and angle between every pair of lines. Templates and the global
tolerances are loaded once from configuration and are read-only while
frames are matched.
"""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from exceptions import ConfigError, PatternDefinitionError
from log_config.logger import get_logger

logger = get_logger(__name__)

FAMILY_NWIRES = "nwires"
FAMILY_CIRS = "cirs"
KNOWN_FAMILIES = (FAMILY_NWIRES, FAMILY_CIRS)

CIRS_LINE_COUNT = 3

# Radian values are rounded so a degree setting always maps to the same float.
ANGLE_DECIMALS = 12
# Same slack the matcher applies to inclusive bounds.
ANGLE_SLACK_RAD = 1e-9

DEFAULT_MAX_LINE_SHIFT_MM = 10.0


def deg_to_rad(value: float) -> float:
    return round(math.radians(float(value)), ANGLE_DECIMALS)


@dataclass(frozen=True)
class WireGeometry:
    name: str
    front: Tuple[float, float, float]
    back: Tuple[float, float, float]


@dataclass(frozen=True)
class LineDefinition:
    pattern_id: int
    wire_count: int
    wires: Tuple[WireGeometry, ...] = ()


@dataclass(frozen=True)
class LinePairBounds:
    first: int
    second: int
    min_distance_mm: float
    max_distance_mm: float
    min_angle_rad: float = 0.0
    max_angle_rad: float = 0.0

    def distance_window(self, error_percent: float) -> Tuple[float, float]:
        """Distance bounds widened by ``error_percent``."""
        return (
            self.min_distance_mm * (1.0 - error_percent / 100.0),
            self.max_distance_mm * (1.0 + error_percent / 100.0),
        )

    def angle_window(self, tolerance_rad: float) -> Tuple[float, float]:
        return (max(0.0, self.min_angle_rad - tolerance_rad), self.max_angle_rad + tolerance_rad)


@dataclass(frozen=True)
class PatternTemplate:
    name: str
    family: str
    lines: Tuple[LineDefinition, ...]
    pairs: Tuple[LinePairBounds, ...]

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def point_count(self) -> int:
        return sum(line.wire_count for line in self.lines)


@dataclass(frozen=True)
class LabelingTolerances:
    max_line_pair_distance_error_percent: float = 0.0
    max_angle_difference_rad: float = math.pi / 2
    angle_tolerance_rad: float = 0.0
    max_line_shift_mm: float = DEFAULT_MAX_LINE_SHIFT_MM
    min_theta_rad: float = 0.0
    max_theta_rad: float = math.pi / 2


def _number(data: Mapping[str, Any], key: str, pattern_name: Optional[str] = None, default: Any = None) -> float:
    if key not in data or data[key] is None:
        if default is not None:
            return float(default)
        if pattern_name is None:
            raise ConfigError(f"Missing required labeling parameter: {key}")
        raise PatternDefinitionError(f"missing required field '{key}'", pattern_name)
    try:
        return float(data[key])
    except (TypeError, ValueError):
        message = f"'{key}' must be a number, got {data[key]!r}"
        if pattern_name is None:
            raise ConfigError(message)
        raise PatternDefinitionError(message, pattern_name)


def _point3(value: Any, field_name: str, pattern_name: str) -> Tuple[float, float, float]:
    try:
        x, y, z = (float(v) for v in value)
    except (TypeError, ValueError):
        raise PatternDefinitionError(f"'{field_name}' must be three numbers, got {value!r}", pattern_name)
    return (x, y, z)


def _parse_line(data: Any, index: int, pattern_name: str) -> LineDefinition:
    if not isinstance(data, Mapping):
        raise PatternDefinitionError(f"line {index} must be a mapping", pattern_name)
    try:
        pattern_id = int(data.get("pattern_id", index))
    except (TypeError, ValueError):
        raise PatternDefinitionError(f"line {index} has a non-integer pattern_id", pattern_name)
    wires_data = data.get("wires")
    if wires_data is None:
        raise PatternDefinitionError(f"line {index} is missing 'wires'", pattern_name)

    if isinstance(wires_data, (list, tuple)):
        wires = []
        for wire_index, wire in enumerate(wires_data):
            if not isinstance(wire, Mapping) or "front" not in wire or "back" not in wire:
                raise PatternDefinitionError(
                    f"wire {wire_index} of line {index} needs 'front' and 'back' endpoints", pattern_name
                )
            wires.append(
                WireGeometry(
                    name=str(wire.get("name", f"{index}:{wire_index}")),
                    front=_point3(wire["front"], "front", pattern_name),
                    back=_point3(wire["back"], "back", pattern_name),
                )
            )
        wire_count = len(wires)
        geometry = tuple(wires)
    else:
        try:
            wire_count = int(wires_data)
        except (TypeError, ValueError):
            raise PatternDefinitionError(f"line {index} 'wires' must be a count or a wire list", pattern_name)
        geometry = ()

    if wire_count < 1:
        raise PatternDefinitionError(f"line {index} must have at least one wire", pattern_name)
    return LineDefinition(pattern_id=pattern_id, wire_count=wire_count, wires=geometry)


def _parse_pair(data: Any, line_count: int, pattern_name: str) -> LinePairBounds:
    if not isinstance(data, Mapping):
        raise PatternDefinitionError("line pair must be a mapping", pattern_name)
    indices = data.get("lines")
    if not isinstance(indices, (list, tuple)) or len(indices) != 2:
        raise PatternDefinitionError("line pair needs 'lines' with two line indices", pattern_name)
    try:
        first, second = sorted(int(i) for i in indices)
    except (TypeError, ValueError):
        raise PatternDefinitionError(f"line pair indices must be integers, got {list(indices)}", pattern_name)
    if first == second or first < 0 or second >= line_count:
        raise PatternDefinitionError(f"invalid line pair {list(indices)}", pattern_name)

    min_distance = _number(data, "min_distance_mm", pattern_name)
    max_distance = _number(data, "max_distance_mm", pattern_name)
    min_angle_deg = _number(data, "min_angle_degrees", pattern_name, default=0.0)
    max_angle_deg = _number(data, "max_angle_degrees", pattern_name, default=min_angle_deg)

    if min_distance < 0:
        raise PatternDefinitionError(f"negative distance bound for lines {first}-{second}", pattern_name)
    if min_distance > max_distance:
        raise PatternDefinitionError(
            f"min_distance_mm {min_distance} > max_distance_mm {max_distance} for lines {first}-{second}",
            pattern_name,
        )
    if not 0.0 <= min_angle_deg <= max_angle_deg <= 90.0:
        raise PatternDefinitionError(
            f"angle bounds for lines {first}-{second} must satisfy 0 <= min <= max <= 90", pattern_name
        )

    return LinePairBounds(
        first=first,
        second=second,
        min_distance_mm=min_distance,
        max_distance_mm=max_distance,
        min_angle_rad=deg_to_rad(min_angle_deg),
        max_angle_rad=deg_to_rad(max_angle_deg),
    )


def plane_distance_mm(first: LineDefinition, second: LineDefinition) -> float:
    """Distance from ``second``'s first wire front endpoint to the plane of ``first``'s wires."""
    origin = np.asarray(first.wires[0].front, dtype=float)
    across = np.asarray(first.wires[-1].front, dtype=float) - origin
    along = np.asarray(first.wires[0].back, dtype=float) - origin
    normal = np.cross(across, along)
    norm = float(np.linalg.norm(normal))
    if norm == 0.0:
        raise ValueError("wires do not span a plane")
    offset = np.asarray(second.wires[0].front, dtype=float) - origin
    return float(abs(np.dot(offset, normal)) / norm)


def _parse_template(data: Any, index: int) -> PatternTemplate:
    if not isinstance(data, Mapping):
        raise PatternDefinitionError(f"pattern {index} must be a mapping")
    name = str(data.get("name") or f"pattern-{index}")

    family = data.get("family")
    if family is None:
        raise PatternDefinitionError("missing required field 'family'", name)
    family = str(family).lower()
    if family not in KNOWN_FAMILIES:
        raise PatternDefinitionError(f"unknown family '{family}', expected one of {KNOWN_FAMILIES}", name)

    lines_data = data.get("lines")
    if not isinstance(lines_data, (list, tuple)) or not lines_data:
        raise PatternDefinitionError("missing required field 'lines'", name)
    lines = tuple(_parse_line(item, k, name) for k, item in enumerate(lines_data))

    if family == FAMILY_CIRS and len(lines) != CIRS_LINE_COUNT:
        raise PatternDefinitionError(f"CIRS patterns have exactly {CIRS_LINE_COUNT} lines, got {len(lines)}", name)

    pattern_ids = [line.pattern_id for line in lines]
    if len(set(pattern_ids)) != len(pattern_ids):
        raise PatternDefinitionError(f"duplicate pattern ids {pattern_ids}", name)

    pairs: Dict[Tuple[int, int], LinePairBounds] = {}
    for item in data.get("line_pairs") or []:
        pair = _parse_pair(item, len(lines), name)
        key = (pair.first, pair.second)
        if key in pairs:
            raise PatternDefinitionError(f"line pair {list(key)} defined twice", name)
        pairs[key] = pair

    for first, second in itertools.combinations(range(len(lines)), 2):
        if (first, second) in pairs:
            continue
        if not (lines[first].wires and lines[second].wires):
            raise PatternDefinitionError(f"no distance bounds for lines {first}-{second}", name)
        try:
            distance = plane_distance_mm(lines[first], lines[second])
        except ValueError:
            raise PatternDefinitionError(f"wires of line {first} do not span a plane", name)
        logger.debug(f"Pattern '{name}': derived distance {distance:.3f} mm for lines {first}-{second}")
        pairs[(first, second)] = LinePairBounds(
            first=first, second=second, min_distance_mm=distance, max_distance_mm=distance
        )

    return PatternTemplate(
        name=name,
        family=family,
        lines=lines,
        pairs=tuple(pairs[key] for key in sorted(pairs)),
    )


class PatternTemplateStore:
    """Configured pattern templates, tolerances and frame geometry."""

    SECTION = "fid_labeling"

    def __init__(self) -> None:
        self.templates: List[PatternTemplate] = []
        self.tolerances = LabelingTolerances()
        self.approximate_spacing_mm_per_pixel: float = -1.0
        self.frame_size: Tuple[int, int] = (-1, -1)

    @property
    def configured(self) -> bool:
        return bool(self.templates) and self.approximate_spacing_mm_per_pixel > 0

    def read_configuration(
        self,
        tree: Mapping[str, Any],
        min_theta_rad: Optional[float] = None,
        max_theta_rad: Optional[float] = None,
    ) -> None:
        """Load templates and tolerances from a parsed configuration tree.

        Args:
            tree: Mapping with a ``fid_labeling`` section and a ``patterns`` list
            min_theta_rad: Overrides ``min_theta_degrees`` when given
            max_theta_rad: Overrides ``max_theta_degrees`` when given

        Raises:
            ConfigError: If a required value is missing or inconsistent. The
                store is left unchanged in that case.
        """
        if not isinstance(tree, Mapping):
            raise ConfigError("Configuration tree must be a mapping")
        section = tree.get(self.SECTION)
        if not isinstance(section, Mapping):
            raise ConfigError(f"Missing required configuration section: {self.SECTION}")

        spacing = _number(section, "approximate_spacing_mm_per_pixel")
        if spacing <= 0:
            raise ConfigError("approximate_spacing_mm_per_pixel must be positive")

        error_percent = _number(section, "max_line_pair_distance_error_percent")
        if not 0.0 <= error_percent < 100.0:
            raise ConfigError("max_line_pair_distance_error_percent must be in [0, 100)")

        max_angle_difference = _number(section, "max_angle_difference_degrees")
        angle_tolerance = _number(section, "angle_tolerance_degrees")
        max_shift = _number(section, "max_line_shift_mm", default=DEFAULT_MAX_LINE_SHIFT_MM)
        min_theta_deg = _number(section, "min_theta_degrees", default=0.0)
        max_theta_deg = _number(section, "max_theta_degrees", default=90.0)
        for key, value in (
            ("max_angle_difference_degrees", max_angle_difference),
            ("angle_tolerance_degrees", angle_tolerance),
            ("max_line_shift_mm", max_shift),
        ):
            if value < 0:
                raise ConfigError(f"{key} must not be negative")

        tolerances = LabelingTolerances(
            max_line_pair_distance_error_percent=error_percent,
            max_angle_difference_rad=deg_to_rad(max_angle_difference),
            angle_tolerance_rad=deg_to_rad(angle_tolerance),
            max_line_shift_mm=max_shift,
            min_theta_rad=min_theta_rad if min_theta_rad is not None else deg_to_rad(min_theta_deg),
            max_theta_rad=max_theta_rad if max_theta_rad is not None else deg_to_rad(max_theta_deg),
        )
        if not 0.0 <= tolerances.min_theta_rad <= tolerances.max_theta_rad:
            raise ConfigError("theta bounds must satisfy 0 <= min <= max")

        frame_size = (-1, -1)
        if section.get("frame_size") is not None:
            frame_size = self._parse_frame_size(section["frame_size"])

        patterns_data = tree.get("patterns")
        if not isinstance(patterns_data, (list, tuple)) or not patterns_data:
            raise ConfigError("Configuration defines no patterns")
        templates = [_parse_template(item, index) for index, item in enumerate(patterns_data)]
        names = [template.name for template in templates]
        if len(set(names)) != len(names):
            raise ConfigError(f"Duplicate pattern names: {names}")
        for template in templates:
            self._check_reachable_angles(template, tolerances)

        self.templates = templates
        self.tolerances = tolerances
        self.approximate_spacing_mm_per_pixel = spacing
        self.frame_size = frame_size
        logger.info(
            f"Loaded {len(templates)} pattern template(s): "
            + ", ".join(f"{t.name} ({t.family}, {t.line_count} lines)" for t in templates)
        )

    @staticmethod
    def _parse_frame_size(value: Sequence[Any]) -> Tuple[int, int]:
        try:
            width, height = (int(v) for v in value)
        except (TypeError, ValueError):
            raise ConfigError(f"frame_size must be [width, height], got {value!r}")
        if width <= 0 or height <= 0:
            raise ConfigError("frame_size must be positive")
        return (width, height)

    @staticmethod
    def _check_reachable_angles(template: PatternTemplate, tolerances: LabelingTolerances) -> None:
        # A pair whose widened angle window starts above the global cap can never match.
        for pair in template.pairs:
            angle_low, _ = pair.angle_window(tolerances.angle_tolerance_rad)
            if angle_low > tolerances.max_angle_difference_rad + ANGLE_SLACK_RAD:
                raise PatternDefinitionError(
                    f"angle window for lines {pair.first}-{pair.second} starts at "
                    f"{math.degrees(angle_low):.3f} deg, above max_angle_difference_degrees "
                    f"{math.degrees(tolerances.max_angle_difference_rad):.3f}",
                    template.name,
                )

    def set_patterns(self, templates: Sequence[PatternTemplate]) -> None:
        self.templates = list(templates)

    def set_frame_size(self, frame_size: Sequence[int]) -> None:
        self.frame_size = self._parse_frame_size(frame_size)

    def set_approximate_spacing_mm_per_pixel(self, value: float) -> None:
        if value <= 0:
            raise ConfigError("approximate_spacing_mm_per_pixel must be positive")
        self.approximate_spacing_mm_per_pixel = float(value)

    def set_max_line_pair_distance_error_percent(self, value: float) -> None:
        self.tolerances = replace(self.tolerances, max_line_pair_distance_error_percent=float(value))

    def set_max_angle_difference_deg(self, value: float) -> None:
        self.tolerances = replace(self.tolerances, max_angle_difference_rad=deg_to_rad(value))

    def set_min_theta_deg(self, value: float) -> None:
        self.tolerances = replace(self.tolerances, min_theta_rad=deg_to_rad(value))

    def set_max_theta_deg(self, value: float) -> None:
        self.tolerances = replace(self.tolerances, max_theta_rad=deg_to_rad(value))

    def set_angle_tolerance_deg(self, value: float) -> None:
        self.tolerances = replace(self.tolerances, angle_tolerance_rad=deg_to_rad(value))

    def set_max_line_shift_mm(self, value: float) -> None:
        self.tolerances = replace(self.tolerances, max_line_shift_mm=float(value))

    @property
    def max_line_shift_mm(self) -> float:
        return self.tolerances.max_line_shift_mm
