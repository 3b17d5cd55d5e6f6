"""
Logging configuration for cleaner script output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

PACKAGE_LOGGER = "oracle_manipulation"


def _package_loggers():
    for name, logger in logging.root.manager.loggerDict.items():
        if name.startswith(PACKAGE_LOGGER) and isinstance(logger, logging.Logger):
            yield logger


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Routes every simulator logger through one root handler
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    """

    # Root logger - minimal format
    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    # Create console handler with clean format
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    # Minimal format: time + level + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Module loggers carry their own handlers; hand output to the root instead
    for logger in _package_loggers():
        logger.handlers.clear()
        logger.setLevel(level)

    logging.getLogger("__main__").setLevel(level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def setup_minimal():
    """
    Even more minimal logging - only warnings and errors.
    Shows reverted sequences but not committed ones.
    """
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows every swap, transfer and state transition.
    """
    setup(level=logging.DEBUG)
