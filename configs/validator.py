"""Configuration validation using JSON Schema."""

from __future__ import annotations

from typing import Any, Dict

import jsonschema
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

_POINT3 = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 3,
    "maxItems": 3,
}

_WIRE = {
    "type": "object",
    "required": ["front", "back"],
    "properties": {
        "name": {"type": "string"},
        "front": _POINT3,
        "back": _POINT3,
    },
}

# JSON Schema for fiducial labeling configuration files
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["fid_labeling", "patterns"],
    "properties": {
        "fid_labeling": {
            "type": "object",
            "required": [
                "approximate_spacing_mm_per_pixel",
                "max_line_pair_distance_error_percent",
                "max_angle_difference_degrees",
                "angle_tolerance_degrees",
            ],
            "properties": {
                "approximate_spacing_mm_per_pixel": {"type": "number", "exclusiveMinimum": 0},
                "max_line_pair_distance_error_percent": {"type": "number", "minimum": 0, "exclusiveMaximum": 100},
                "max_angle_difference_degrees": {"type": "number", "minimum": 0, "maximum": 90},
                "angle_tolerance_degrees": {"type": "number", "minimum": 0, "maximum": 90},
                "max_line_shift_mm": {"type": "number", "minimum": 0, "default": 10.0},
                "min_theta_degrees": {"type": "number", "minimum": 0, "maximum": 90, "default": 0.0},
                "max_theta_degrees": {"type": "number", "minimum": 0, "maximum": 90, "default": 90.0},
                "frame_size": {
                    "type": ["array", "null"],
                    "items": {"type": "integer", "minimum": 1},
                    "minItems": 2,
                    "maxItems": 2,
                },
            },
        },
        "patterns": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["family", "lines"],
                "properties": {
                    "name": {"type": "string"},
                    "family": {"type": "string", "enum": ["nwires", "cirs"]},
                    "lines": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["wires"],
                            "properties": {
                                "pattern_id": {"type": "integer", "minimum": 0},
                                "wires": {
                                    "oneOf": [
                                        {"type": "integer", "minimum": 1},
                                        {"type": "array", "minItems": 1, "items": _WIRE},
                                    ]
                                },
                            },
                        },
                    },
                    "line_pairs": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["lines", "min_distance_mm", "max_distance_mm"],
                            "properties": {
                                "lines": {
                                    "type": "array",
                                    "items": {"type": "integer", "minimum": 0},
                                    "minItems": 2,
                                    "maxItems": 2,
                                },
                                "min_distance_mm": {"type": "number", "minimum": 0},
                                "max_distance_mm": {"type": "number", "minimum": 0},
                                "min_angle_degrees": {"type": "number", "minimum": 0, "maximum": 90},
                                "max_angle_degrees": {"type": "number", "minimum": 0, "maximum": 90},
                            },
                        },
                    },
                },
            },
        },
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        for prop, subschema in properties.items():
            if "default" in subschema and isinstance(instance, dict):
                instance.setdefault(prop, subschema["default"])

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema.

    Missing optional tolerances are filled in with their defaults.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))

        if errors:
            error_messages = []
            for error in errors:
                path = " -> ".join(str(p) for p in error.path) if error.path else "root"
                error_messages.append(f"{path}: {error.message}")

            logger.error(f"Configuration validation failed with {len(errors)} errors")
            for msg in error_messages:
                logger.error(f"  - {msg}")

            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
                validation_errors=error_messages,
            )

        logger.info("Configuration validation passed")

    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")


__all__ = ["validate_config", "CONFIG_SCHEMA"]
