# FILE: messboard/logging_setup.py
"""
Root logger configuration
"""
import logging
import sys
from typing import Optional

from messboard.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure the root logger once.

    Args:
        log_level: Level name; defaults to LOG_LEVEL from settings
    """
    if log_level is None:
        log_level = get_settings().log_level

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Avoid adding handlers multiple times
    if any(getattr(h, "_messboard", False) for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._messboard = True
    root_logger.addHandler(handler)
