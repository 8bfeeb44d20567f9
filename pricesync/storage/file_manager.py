# pricesync/storage/file_manager.py

"""Writes run summaries and reconciliation reports to disk."""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pricesync.config.settings import Settings

logger = logging.getLogger("pricesync.storage")

RECONCILIATION_COLUMNS = [
    "competitor",
    "source_sku",
    "query_key",
    "title",
    "price",
    "stock",
    "storage",
    "color",
    "condition",
    "match_reason",
    "source_url",
]


class FileManager:
    """Handles saving run artefacts to the reports directory."""

    def __init__(self) -> None:
        self.reports_dir: Path = Settings.REPORTS_DIR
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("FileManager initialised, reports_dir=%s", self.reports_dir)

    def save_run_summary(
        self, execution_id: int, summary: dict[str, Any],
    ) -> Path:
        """Save a run summary to a timestamped JSON file."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = self.reports_dir / f"run_{execution_id}_{timestamp}.json"

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(summary, f, ensure_ascii=False, indent=2, default=str)

        logger.info("Saved summary of execution %d to %s", execution_id, filepath)
        return filepath

    def export_unmatched_csv(
        self, execution_id: int, rows: list[dict[str, Any]],
    ) -> Path:
        """Export unmatched offers for operators to map by hand.

        Rows are sorted by competitor then source SKU so consecutive
        reports diff cleanly.
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = (
            self.reports_dir / f"unmatched_{execution_id}_{timestamp}.csv"
        )

        sorted_rows = sorted(
            rows,
            key=lambda r: (r.get("competitor") or "", r.get("source_sku") or ""),
        )

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(
                f, fieldnames=RECONCILIATION_COLUMNS, extrasaction="ignore",
            )
            writer.writeheader()
            for row in sorted_rows:
                writer.writerow(row)

        logger.info(
            "Exported %d unmatched offers of execution %d to %s",
            len(rows),
            execution_id,
            filepath,
        )
        return filepath
