"""Log sink setup for the probe DAQ system."""

import os
import sys
from typing import Optional

from loguru import logger

DEFAULT_LOGLEVEL = "INFO"


def setup_logging(level: str = DEFAULT_LOGLEVEL, enabled: bool = True, log_path: Optional[str] = None) -> None:
    """
    Replace the default loguru sink with the configured ones.

    Args:
        level: Minimum level for every sink
        enabled: When False no sink is installed and the package stays quiet
        log_path: Optional file to log to in addition to stderr
    """
    # first remove (default) stderr output
    logger.remove()

    if not enabled:
        return

    logger.add(sys.stderr, level=level, enqueue=True, colorize=True)
    if log_path:
        log_path = os.path.abspath(log_path)
        logger.add(log_path, level=level, enqueue=True, colorize=False)
        logger.info("Probe DAQ log started at {}", log_path)


def setup_logging_from_config(config) -> None:
    """Apply the logging options of a Config."""
    setup_logging(config.log_level, config.enable_logging, config.log_file)
