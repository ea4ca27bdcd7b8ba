"""Custom exception classes for fiducial labeling."""

from __future__ import annotations

from typing import Optional


class FidLabelingError(Exception):
    """Base exception for all fiducial labeling errors."""

    pass


class ConfigError(FidLabelingError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is missing, unreadable or not valid YAML."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)


class PatternDefinitionError(ConfigError):
    """Raised when a pattern template is incomplete or numerically inconsistent."""

    def __init__(self, message: str, pattern_name: Optional[str] = None):
        self.pattern_name = pattern_name
        if pattern_name:
            message = f"Pattern '{pattern_name}': {message}"
        super().__init__(message)


class FrameInputError(FidLabelingError):
    """Raised when dots or line groupings supplied for a frame cannot be parsed."""

    pass
