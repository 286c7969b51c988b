"""
Logging configuration for esrflow.

Every run gets its own log file, esrflow_data/logs/esrflow-<time>-<pid>.log
(ESRFLOW_LOG_DIR moves the directory), so parallel runs never interleave. Only
the ``esrflow`` logger tree is configured; an embedding application's root
logger is left as it is.
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "esrflow"
LOG_DIR = Path("esrflow_data") / "logs"
LOG_DIR_ENV = "ESRFLOW_LOG_DIR"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"


def run_log_path(log_dir: Optional[Union[str, Path]] = None) -> Path:
    """Path of a fresh per-run log file."""
    base = Path(log_dir or os.environ.get(LOG_DIR_ENV) or LOG_DIR)
    return base / f"esrflow-{time.strftime('%Y%m%d-%H%M%S')}-{os.getpid()}.log"


def current_log_file() -> Optional[Path]:
    """Log file installed by the last setup_logging call, if any."""
    for h in logging.getLogger(LOGGER_NAME).handlers:
        if isinstance(h, logging.FileHandler):
            return Path(h.baseFilename)
    return None


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
    format_string: Optional[str] = None,
    console_level: Optional[str] = None,
) -> logging.Logger:
    """
    Setup logging for the esrflow loggers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for the run log (default: $ESRFLOW_LOG_DIR or esrflow_data/logs)
        format_string: Custom format string
        console_level: Console level, WARNING unless given

    Returns:
        The ``esrflow`` logger. Calling again replaces its handlers.
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT
    formatter = logging.Formatter(format_string)

    log_path = run_log_path(log_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = False

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setFormatter(formatter)
    fh.setLevel(getattr(logging, level.upper()))
    logger.addHandler(fh)

    # Console handler (quiet by default; the progress bar owns stdout)
    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(getattr(logging, (console_level or "WARNING").upper()))
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    logger.debug("Logging to %s", log_path)
    return logger
