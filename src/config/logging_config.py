# src/config/logging_config.py

"""Per-run logging configuration for price_sync.

Every invocation of the CLI writes a dedicated log file inside
``logs/`` named after its start time (``logs/run_20260214_153045.log``).
All ``price_sync.*`` loggers propagate to the root project logger, so
the matcher, client, store and orchestrator all land in the same file.

The file captures DEBUG records, which is where the per-offer matching
decisions and swallowed per-category errors of a sync run end up.  The
console only shows warnings unless ``--verbose`` is given.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER_NAME = "price_sync"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    console_level: int = logging.WARNING,
    logs_dir: Path | None = None,
) -> Path:
    """Attach the file and console handlers to the ``price_sync`` logger.

    Args:
        console_level: Minimum level echoed to stderr.
        logs_dir: Directory for the run log (defaults to
            ``Settings.LOGS_DIR``).

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    directory = logs_dir or Settings.LOGS_DIR
    directory.mkdir(parents=True, exist_ok=True)

    started = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = directory / f"run_{started}.log"

    project_logger = logging.getLogger(ROOT_LOGGER_NAME)
    project_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, nested CLI helpers) keep the first handlers
    if project_logger.handlers:
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

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)

    project_logger.info("Run log opened at %s", log_file)
    return log_file
