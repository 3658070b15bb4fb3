"""
Structured logging configuration.
Sets up JSON-formatted log files plus an optional plain console stream.
"""

import logging
from pathlib import Path
from datetime import datetime
from typing import Optional
from pythonjsonlogger import jsonlogger
import sys

from .utils import ensure_directory


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = "INFO",
    json_format: bool = True,
    console_output: bool = True,
) -> Optional[Path]:
    """
    Configure structured logging.

    Args:
        log_dir: Directory to write log files (no file logging if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON-formatted log files if True
        console_output: Also output to console (stderr) if True

    Returns:
        Path of the log file, if one was created
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers
    root_logger.handlers.clear()

    log_file = None

    if log_dir is not None:
        ensure_directory(log_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = Path(log_dir) / f"feed_converter_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)

        if json_format:
            formatter = jsonlogger.JsonFormatter(
                '%(asctime)s %(levelname)s %(name)s %(message)s',
                rename_fields={'asctime': 'timestamp', 'levelname': 'level'},
            )
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Console goes to stderr so CSV written to stdout stays clean
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)

        console_formatter = logging.Formatter(
            '%(levelname)s - %(name)s - %(message)s'
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    root_logger.debug(f"Logging initialized: {log_file or 'console only'}")
    return log_file
