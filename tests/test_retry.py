# tests/test_retry.py

"""Tests for the transient-error retry helper."""

import sqlite3
import unittest
from unittest.mock import MagicMock, patch

from pricesync.storage.retry import is_transient, with_retry


class TestIsTransient(unittest.TestCase):
    """Only allow-listed operational errors are transient."""

    def test_schema_errors_are_transient(self) -> None:
        self.assertTrue(
            is_transient(sqlite3.OperationalError("database schema has changed"))
        )
        self.assertTrue(
            is_transient(sqlite3.OperationalError("database is locked"))
        )

    def test_other_errors_are_not(self) -> None:
        self.assertFalse(
            is_transient(sqlite3.OperationalError("no such table: x"))
        )
        self.assertFalse(
            is_transient(sqlite3.IntegrityError("database is locked"))
        )
        self.assertFalse(is_transient(ValueError("schema cache")))


class TestWithRetry(unittest.TestCase):
    """Backoff doubles; non-retryable errors propagate at once."""

    def test_success_first_try(self) -> None:
        operation = MagicMock(return_value=5)
        self.assertEqual(with_retry(operation, "op"), 5)
        operation.assert_called_once()

    def test_retries_transient_then_succeeds(self) -> None:
        operation = MagicMock(side_effect=[
            sqlite3.OperationalError("database is locked"),
            sqlite3.OperationalError("database is locked"),
            "ok",
        ])

        with patch("pricesync.storage.retry.time.sleep") as mock_sleep:
            result = with_retry(
                operation, "op", max_attempts=3, base_delay=1.0,
            )

        self.assertEqual(result, "ok")
        self.assertEqual(operation.call_count, 3)
        delays = [c.args[0] for c in mock_sleep.call_args_list]
        self.assertEqual(delays, [1.0, 2.0])

    def test_gives_up_after_max_attempts(self) -> None:
        operation = MagicMock(
            side_effect=sqlite3.OperationalError("database is locked"),
        )

        with self.assertRaises(sqlite3.OperationalError):
            with_retry(operation, "op", max_attempts=3)

        self.assertEqual(operation.call_count, 3)

    def test_non_retryable_not_retried(self) -> None:
        operation = MagicMock(side_effect=sqlite3.IntegrityError("dup"))

        with self.assertRaises(sqlite3.IntegrityError):
            with_retry(operation, "op", max_attempts=3)

        operation.assert_called_once()

    def test_custom_predicate(self) -> None:
        operation = MagicMock(side_effect=[KeyError("x"), 1])

        result = with_retry(
            operation, "op", is_retryable=lambda e: isinstance(e, KeyError),
        )

        self.assertEqual(result, 1)


if __name__ == "__main__":
    unittest.main()
