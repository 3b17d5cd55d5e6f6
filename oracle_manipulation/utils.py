"""
Common utilities and helper functions for the simulator.

This module provides centralized helpers for logging, dictionary merging and
human-readable formatting of fixed-point values.
"""

import logging
from typing import Any, Dict, Optional, Union

from .fixed_point import from_wad


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    # Set level if not already set
    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    # Add structured formatter if no handlers exist
    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        # Store extra context in logger
        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger


# Dictionary utilities
def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        update: Dictionary to merge into base

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


# Formatting utilities
def format_wad(value: int, places: int = 6) -> str:
    """Format a WAD integer as a human-readable decimal string.

    Examples:
        >>> format_wad(1_500_000_000_000_000_000)
        '1.500000'
        >>> format_wad(-25 * 10**16, places=2)
        '-0.25'
    """
    human = from_wad(value)
    return f"{human:.{places}f}"


def format_signed_wad(value: int, places: int = 6) -> str:
    """Format a WAD delta with an explicit sign prefix.

    Examples:
        >>> format_signed_wad(2 * 10**18, places=2)
        '+2.00'
        >>> format_signed_wad(-10**18, places=2)
        '-1.00'
        >>> format_signed_wad(0, places=2)
        '+0.00'
    """
    text = format_wad(value, places)
    if value >= 0:
        return f"+{text}"
    return text
