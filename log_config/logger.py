"""Centralized logging configuration using loguru."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

# Remove default handler
logger.remove()

# Add console handler with INFO level
logger.add(
    sys.stderr,
    level="INFO",
    format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def enable_file_logging(logs_dir: Union[str, Path] = "logs") -> List[int]:
    """Add rotating file sinks for a full debug log and an error-only log.

    Args:
        logs_dir: Directory receiving the log files (created if missing)

    Returns:
        Handler ids of the added sinks, for ``logger.remove``
    """
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    debug_id = logger.add(
        logs_dir / "fid_labeling_{time}.log",
        rotation="50 MB",
        retention="10 days",
        level="DEBUG",
        format=_FILE_FORMAT,
        enqueue=True,  # Thread-safe logging
    )

    error_id = logger.add(
        logs_dir / "errors_{time}.log",
        rotation="10 MB",
        retention="30 days",
        level="ERROR",
        format=_FILE_FORMAT,
        enqueue=True,
    )
    logger.info(f"Writing log files to {logs_dir}")
    return [debug_id, error_id]


def get_logger(name: Optional[str] = None):
    """Get a logger instance with the given name.

    Args:
        name: Module name for the logger (usually __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


# Export configured logger
__all__ = ["logger", "get_logger", "enable_file_logging"]
