"""
Utility functions for the mission planner.

This module provides common utility functions used throughout
the mission planning tool.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path

    Environment Variables:
        EO_PLANNER_LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_level = os.environ.get("EO_PLANNER_LOG_LEVEL")
    if env_level:
        level = env_level
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.debug(f"Logging configured at {level} level")


def parse_datetime(date_string: str) -> datetime:
    """
    Parse datetime string in various formats.

    Args:
        date_string: Date string to parse

    Returns:
        Parsed datetime object (UTC, timezone-naive)

    Raises:
        ValueError: If date string cannot be parsed
    """
    formats = [
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%d",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_string, fmt)
        except ValueError:
            continue

    # ISO strings with an explicit offset are normalised to naive UTC
    try:
        dt = datetime.fromisoformat(date_string)
    except ValueError:
        dt = None
    if dt is not None:
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt

    raise ValueError(f"Could not parse datetime string: {date_string}")


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def get_optimal_workers(max_workers: Optional[int] = None, num_targets: int = 0) -> int:
    """
    Determine optimal number of workers for per-target computations.

    Args:
        max_workers: Maximum number of workers (None = auto-detect)
        num_targets: Number of targets to process

    Returns:
        Number of workers to use, at least 1
    """
    cpu_count = os.cpu_count() or 4

    if max_workers is not None:
        return max(1, min(max_workers, cpu_count))

    if num_targets > 0:
        # Don't spawn more workers than targets
        return max(1, min(num_targets, cpu_count))

    return cpu_count
