# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/system/logging_setup.py

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FILE = "titor.log"


def setup_logging(local_log: Optional[Path] = None, debug: bool = False) -> None:
    """Setup loguru logging for the entire application.

    Configures:
    - Console output: WARNING+ only (DEBUG+ with ``debug``)
    - File output: DEBUG+ into ``<local_log>/titor.log`` if local_log is set
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level="DEBUG" if debug else "WARNING",
        format="<level>{level}</level>: {message}",
        colorize=True
    )

    if local_log is None:
        return

    try:
        log_dir = Path(local_log)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / LOG_FILE

        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="30 days",
            compression="gz"
        )
        logger.debug(f"File logging enabled: {log_file}")

    except OSError as e:
        # Console logging still works; a run is not aborted for its log file
        logger.warning(f"Failed to setup file logging: {e}")
