# pricesync/config/logging_config.py

"""Per-run logging for pricesync.

One file per invocation under ``logs/`` (``run_YYYYmmdd_HHMMSS.log``) at
DEBUG, plus a stderr handler for the scheduler at WARNING.  Records carry
the execution id of the sync in progress and the worker thread name,
which adapter pools prefix with the competitor id, so interleaved
competitor output can be told apart in the file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pricesync.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | exec=%(execution_id)s | "
    "%(threadName)s | %(name)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NO_EXECUTION = "-"


class ExecutionContextFilter(logging.Filter):
    """Stamp every record with the execution id bound for this process."""

    execution_id: int | None = None

    def filter(self, record: logging.LogRecord) -> bool:
        record.execution_id = (
            _NO_EXECUTION
            if ExecutionContextFilter.execution_id is None
            else ExecutionContextFilter.execution_id
        )
        return True


def bind_execution(execution_id: int | None) -> None:
    """Tag subsequent log records with ``execution_id`` (None clears it)."""
    ExecutionContextFilter.execution_id = execution_id


def _file_handler(log_file: Path) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    handler.addFilter(ExecutionContextFilter())
    return handler


def _console_handler(verbose: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.INFO if verbose else logging.WARNING)
    handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )
    return handler


def setup_logging(verbose: bool = False) -> Path:
    """Attach the run's handlers to the ``pricesync`` logger.

    Args:
        verbose: Show INFO on the console instead of WARNING.

    Returns:
        Path of the log file for this run.  Repeated calls keep the
        handlers already attached.
    """
    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_file = (
        Settings.LOGS_DIR
        / f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )

    root_logger = logging.getLogger("pricesync")
    root_logger.setLevel(logging.DEBUG)
    if root_logger.handlers:
        return log_file

    root_logger.addHandler(_file_handler(log_file))
    root_logger.addHandler(_console_handler(verbose))
    root_logger.info("Logging to %s", log_file)
    return log_file
