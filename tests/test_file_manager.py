# tests/test_file_manager.py

"""Tests for the FileManager storage module."""

import csv
import json
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import patch

from pricesync.storage.file_manager import RECONCILIATION_COLUMNS, FileManager


class TestFileManager(unittest.TestCase):
    """Tests for run summaries and reconciliation exports."""

    def setUp(self) -> None:
        """Set up a temp directory for reports."""
        import tempfile

        self.tmp_dir = tempfile.mkdtemp()

        def _fake_init(inst: Any) -> None:
            inst.reports_dir = Path(self.tmp_dir)

        self._patcher = patch.object(
            FileManager, "__init__", _fake_init
        )
        self._patcher.start()
        self.addCleanup(self._patcher.stop)
        self.fm = FileManager()

    def _unmatched_rows(self) -> list[dict[str, Any]]:
        """Return unmatched offers out of order, with an extra column."""
        return [
            {
                "competitor": "reebelo",
                "source_sku": "RB-2",
                "title": "Galaxy S22",
                "price": "650.00",
                "stock": 1,
                "match_reason": "no_candidates",
                "execution_id": 3,
            },
            {
                "competitor": "green-gadgets",
                "source_sku": "GG-9",
                "title": "Apple iPhone 12 Pro",
                "price": "749.00",
                "stock": 0,
                "match_reason": "ambiguous",
            },
            {
                "competitor": "reebelo",
                "source_sku": "RB-1",
                "title": "iPhone 13",
                "price": "899.00",
                "stock": 4,
                "match_reason": "no_attribute_match",
            },
        ]

    def test_save_run_summary_creates_json(self) -> None:
        """Verify save_run_summary writes a valid JSON file."""
        summary = {"execution_id": 3, "status": "completed"}
        path = self.fm.save_run_summary(3, summary)

        self.assertTrue(path.exists())
        self.assertTrue(path.name.startswith("run_3_"))
        with open(path) as f:
            data: dict[str, Any] = json.load(f)
        self.assertEqual(data, summary)

    def test_export_unmatched_csv_sorted(self) -> None:
        """Rows come out ordered by competitor then source SKU."""
        path = self.fm.export_unmatched_csv(3, self._unmatched_rows())

        self.assertTrue(path.exists())
        self.assertTrue(path.name.startswith("unmatched_3_"))
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            self.assertEqual(reader.fieldnames, RECONCILIATION_COLUMNS)
            rows = list(reader)
        self.assertEqual(
            [r["source_sku"] for r in rows], ["GG-9", "RB-1", "RB-2"],
        )
        self.assertEqual(rows[0]["match_reason"], "ambiguous")
        self.assertEqual(rows[2]["storage"], "")

    def test_export_unmatched_csv_empty(self) -> None:
        """An empty export still carries the header row."""
        path = self.fm.export_unmatched_csv(4, [])

        with open(path, newline="") as f:
            lines = f.read().splitlines()
        self.assertEqual(lines, [",".join(RECONCILIATION_COLUMNS)])


class TestFileManagerInit(unittest.TestCase):
    """The real constructor creates the reports directory."""

    def test_creates_reports_dir(self) -> None:
        import tempfile

        from pricesync.config.settings import Settings

        target = Path(tempfile.mkdtemp()) / "nested" / "reports"
        with patch.object(Settings, "REPORTS_DIR", target):
            fm = FileManager()

        self.assertEqual(fm.reports_dir, target)
        self.assertTrue(target.is_dir())


if __name__ == "__main__":
    unittest.main()
