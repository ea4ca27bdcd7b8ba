"""Logging setup shared by all modules."""

from .logger import enable_file_logging, get_logger, logger

__all__ = ["enable_file_logging", "get_logger", "logger"]
