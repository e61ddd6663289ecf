"""
Logging configuration for Pharmacy Map Creator.

Console output carries progress messages (INFO unless PHARMAP_LOG_LEVEL says
otherwise), while the log file keeps DEBUG-level detail with timestamps and
module names for troubleshooting a map build.

Functions:
    setup_logging: Initialize console and file handlers and return log file path
    get_logger: Get a child logger for a specific module
    log_banner: Log a title framed by separator lines

Example:
    >>> from utils.logger import setup_logging, get_logger, log_banner
    >>> log_file = setup_logging()
    >>> logger = get_logger(__name__)
    >>> log_banner(logger, "Loading Input Layers")
"""

import logging
import os
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional

ROOT_LOGGER_NAME = 'pharmap'
LOG_LEVEL_ENV = 'PHARMAP_LOG_LEVEL'
BANNER_WIDTH = 80


def _console_level() -> int:
    """Console level from PHARMAP_LOG_LEVEL (e.g. 'DEBUG', 'WARNING'), INFO otherwise."""
    name = os.environ.get(LOG_LEVEL_ENV, 'INFO').strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_dir: Optional[Path] = None) -> Path:
    """
    Setup logging to console and a per-run log file.

    Creates two handlers:
    - Console: plain messages at the PHARMAP_LOG_LEVEL level (default INFO)
    - File: DEBUG level with timestamps and module names

    Calling it again replaces the handlers of the previous run.

    Parameters:
    -----------
    log_dir : Optional[Path]
        Directory for log files. Defaults to PROJECT_ROOT/logs

    Returns:
    --------
    Path
        Path to the created log file
    """
    if log_dir is None:
        log_dir = Path(__file__).parent.parent / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"pharmap_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(_console_level())
    console.setFormatter(logging.Formatter('%(message)s'))

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(console)
    logger.addHandler(file_handler)

    logger.debug(f"Logging initialized: {log_file} (console level {logging.getLevelName(console.level)})")

    return log_file


def get_logger(name: str) -> logging.Logger:
    """Child of the 'pharmap' logger for a module (pass __name__)."""
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')


def log_banner(logger: logging.Logger, title: str, level: int = logging.INFO) -> None:
    """Log title between two separator lines, marking a workflow stage."""
    logger.log(level, "=" * BANNER_WIDTH)
    logger.log(level, title)
    logger.log(level, "=" * BANNER_WIDTH)
