"""Configuration loading for fiducial labeling."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from configs.validator import validate_config
from exceptions import InvalidConfigError
from labeling.templates import PatternTemplateStore
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("fid_labeling.yaml")


def read_config_tree(path: Path) -> Dict[str, Any]:
    """Read and schema-validate a YAML configuration file.

    Raises:
        InvalidConfigError: If the file is missing or not valid YAML
        ConfigValidationError: If the content does not match the schema
    """
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigError(f"Configuration file is empty or not a mapping: {path}")

    validate_config(data)
    return data


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> PatternTemplateStore:
    """Load, validate and parse a labeling configuration file.

    Args:
        path: Path to configuration file

    Returns:
        Configured PatternTemplateStore

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    data = read_config_tree(Path(path))
    store = PatternTemplateStore()
    store.read_configuration(data)
    logger.info(
        f"Configuration loaded successfully: {len(store.templates)} pattern(s), "
        f"{store.approximate_spacing_mm_per_pixel} mm/px"
    )
    return store
