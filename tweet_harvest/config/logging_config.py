# tweet_harvest/config/logging_config.py

"""Per-run logging configuration for tweet_harvest.

Every launch writes to its own ``logs/run_YYYYMMDD_HHMMSS.log`` file.
Collections for several accounts run on worker threads, so the file
format carries the thread name to keep interleaved page logs readable.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from tweet_harvest.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "tweet_harvest"


def setup_logging(
    log_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach file and console handlers to the ``tweet_harvest`` logger.

    Args:
        log_dir: Directory for the run log. Defaults to ``Settings.LOGS_DIR``.
        console_level: Minimum level echoed to stderr.

    Returns:
        Path of the log file for this run. When handlers are already
        attached (repeated calls in tests) the path is still returned but
        no new handler is added.
    """
    logs_dir = log_dir or Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{stamp}.log"

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialised, run log at %s", log_file)
    return log_file
