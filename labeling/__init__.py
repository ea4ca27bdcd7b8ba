"""Fiducial pattern labeling: recognize phantom wire patterns and label their dots."""

from .families import CirsFamily, NWiresFamily, PatternFamily, get_family
from .matcher import FidLabeling, MatchCandidate, canonical_order
from .templates import (
    LabelingTolerances,
    LineDefinition,
    LinePairBounds,
    PatternTemplate,
    PatternTemplateStore,
    WireGeometry,
    deg_to_rad,
)

__all__ = [
    "CirsFamily",
    "FidLabeling",
    "LabelingTolerances",
    "LineDefinition",
    "LinePairBounds",
    "MatchCandidate",
    "NWiresFamily",
    "PatternFamily",
    "PatternTemplate",
    "PatternTemplateStore",
    "WireGeometry",
    "canonical_order",
    "deg_to_rad",
    "get_family",
]
