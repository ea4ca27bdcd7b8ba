"""Shared data contracts for fiducial labeling."""

from .types import (
    Dot,
    LabelingOutcome,
    LabelingResult,
    Line,
)

__all__ = [
    "Dot",
    "LabelingOutcome",
    "LabelingResult",
    "Line",
]
