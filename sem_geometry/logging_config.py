"""
Logging Configuration
Sets up the logger for the 'sem_geometry' namespace.

Library modules only call logging.getLogger(__name__); nothing is
configured on import.  Applications and test drivers call setup_logging().
"""
import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configures the 'sem_geometry' logger.

    Args:
        level: Logging level (e.g. logging.DEBUG to see per-element syncs)
        log_file: Optional path to also write logs to a file.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("sem_geometry")
    logger.setLevel(level)

    # Re-running setup must not duplicate output
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
