# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import unittest

from pricesync.config.logging_config import (
    ExecutionContextFilter,
    bind_execution,
    setup_logging,
)


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Clean up the pricesync logger before each test."""
        root_logger = logging.getLogger("pricesync")
        root_logger.handlers.clear()
        self.addCleanup(root_logger.handlers.clear)

    def _stream_handlers(self) -> list[logging.Handler]:
        root_logger = logging.getLogger("pricesync")
        return [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_setup_creates_log_file(self) -> None:
        """setup_logging returns a path that exists on disk."""
        log_path = setup_logging()
        self.assertTrue(log_path.exists())

    def test_log_file_naming_convention(self) -> None:
        """Log file name matches run_YYYYMMDD_HHMMSS.log format."""
        log_path = setup_logging()
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_file_handler_level_debug(self) -> None:
        """File handler should be set to DEBUG level."""
        setup_logging()
        root_logger = logging.getLogger("pricesync")
        file_handlers = [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ]
        self.assertTrue(len(file_handlers) >= 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)

    def test_console_handler_level_warning(self) -> None:
        """Console handler should be set to WARNING level."""
        setup_logging()
        handlers = self._stream_handlers()
        self.assertTrue(len(handlers) >= 1)
        self.assertEqual(handlers[0].level, logging.WARNING)

    def test_verbose_lowers_console_level(self) -> None:
        """verbose=True shows INFO on the console."""
        setup_logging(verbose=True)
        self.assertEqual(self._stream_handlers()[0].level, logging.INFO)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging()
        root_logger = logging.getLogger("pricesync")
        count_before = len(root_logger.handlers)
        setup_logging()
        self.assertEqual(count_before, len(root_logger.handlers))

    def test_log_file_inside_logs_dir(self) -> None:
        """Log file is created inside the logs/ directory."""
        log_path = setup_logging()
        self.assertEqual(log_path.parent.name, "logs")

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord(
            "pricesync.reebelo", logging.INFO, __file__, 1, "msg", None, None,
        )

    def test_records_stamped_with_bound_execution(self) -> None:
        """File records carry the execution id of the running sync."""
        self.addCleanup(bind_execution, None)
        record = self._record()

        bind_execution(17)
        ExecutionContextFilter().filter(record)

        self.assertEqual(record.__dict__["execution_id"], 17)

    def test_unbound_execution_placeholder(self) -> None:
        bind_execution(None)
        record = self._record()

        self.assertTrue(ExecutionContextFilter().filter(record))
        self.assertEqual(record.__dict__["execution_id"], "-")

    def test_file_handler_carries_execution_filter(self) -> None:
        setup_logging()
        file_handler = next(
            h
            for h in logging.getLogger("pricesync").handlers
            if isinstance(h, logging.FileHandler)
        )
        self.assertTrue(
            any(
                isinstance(f, ExecutionContextFilter)
                for f in file_handler.filters
            )
        )


if __name__ == "__main__":
    unittest.main()
