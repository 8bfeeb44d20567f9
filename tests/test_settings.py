# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from pricesync.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants and competitor registry."""

    def test_request_delay_is_positive_float(self) -> None:
        """REQUEST_DELAY must be a positive number."""
        self.assertIsInstance(Settings.REQUEST_DELAY, float)
        self.assertGreater(Settings.REQUEST_DELAY, 0)

    def test_request_timeout_is_positive_int(self) -> None:
        """REQUEST_TIMEOUT must be a positive integer."""
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_max_retries_is_positive(self) -> None:
        """MAX_RETRIES must be >= 1."""
        self.assertGreaterEqual(Settings.MAX_RETRIES, 1)

    def test_circuit_breaker_threshold_positive(self) -> None:
        """CIRCUIT_BREAKER_THRESHOLD must be >= 1."""
        self.assertGreaterEqual(
            Settings.CIRCUIT_BREAKER_THRESHOLD, 1
        )

    def test_history_batch_size_positive(self) -> None:
        """HISTORY_BATCH_SIZE must be > 0."""
        self.assertGreater(Settings.HISTORY_BATCH_SIZE, 0)

    def test_transient_errors_are_lowercase(self) -> None:
        """Transient markers are compared against lowercased messages."""
        for marker in Settings.TRANSIENT_STORE_ERRORS:
            self.assertEqual(marker, marker.lower())

    def test_reporting_currency_has_rate(self) -> None:
        """The reporting currency converts to itself."""
        self.assertIn(Settings.REPORTING_CURRENCY, Settings.FX_RATES)

    def test_each_competitor_has_required_keys(self) -> None:
        """Every competitor must name its adapter, normalizer and key kind."""
        for competitor in Settings.COMPETITORS:
            with self.subTest(competitor=competitor.get("id", "?")):
                for key in (
                    "id", "label", "adapter", "normalizer", "query_kind",
                ):
                    self.assertIn(key, competitor)
                self.assertIn(competitor["query_kind"], ("sku", "handle"))

    def test_competitor_ids_are_unique(self) -> None:
        """No duplicate competitor ids."""
        ids = [c["id"] for c in Settings.COMPETITORS]
        self.assertEqual(len(ids), len(set(ids)))

    def test_extra_keys_name_a_setting(self) -> None:
        """extra_keys must point at an existing Settings attribute."""
        for competitor in Settings.COMPETITORS:
            extra = competitor.get("extra_keys")
            if extra:
                self.assertTrue(hasattr(Settings, extra))

    def test_path_constants_are_paths(self) -> None:
        """Path-typed settings are Path instances."""
        self.assertIsInstance(Settings.BASE_DIR, Path)
        self.assertIsInstance(Settings.VOCABULARY_PATH, Path)
        self.assertIsInstance(Settings.DB_PATH, Path)
        self.assertIsInstance(Settings.REPORTS_DIR, Path)
        self.assertIsInstance(Settings.LOGS_DIR, Path)

    def test_vocabulary_path_exists(self) -> None:
        """The vocabulary.json file must exist on disk."""
        self.assertTrue(Settings.VOCABULARY_PATH.exists())

    def test_impersonate_browser_is_string(self) -> None:
        """IMPERSONATE_BROWSER must be a non-empty string."""
        self.assertIsInstance(
            Settings.IMPERSONATE_BROWSER, str
        )
        self.assertTrue(len(Settings.IMPERSONATE_BROWSER) > 0)


if __name__ == "__main__":
    unittest.main()
