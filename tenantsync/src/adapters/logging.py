# tenantsync/src/adapters/logging.py
"""Logging adapter for tenant sync tooling.

Handles logging configuration for scripts.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path


def setup_logging(
    log_dir: Path,
    log_prefix: str = "tenantsync",
    log_level: str = "INFO",
    enable_file: bool = True,
    enable_console: bool = True,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
) -> Path:
    """Setup logging configuration.

    Args:
        log_dir: Directory for log files
        log_prefix: Prefix for log filenames
        log_level: Logging level
        enable_file: Enable file logging
        enable_console: Enable console logging
        log_format: Log message format
        log_date_format: Date format for logs

    Returns:
        Path of the log file, or None when file logging is disabled
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(log_format, datefmt=log_date_format)

    log_file = None
    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"{log_prefix}_{timestamp}.log"

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # urllib3 retry chatter is noise at INFO
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    return log_file
