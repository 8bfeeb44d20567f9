# pricesync/storage/history_store.py

"""Append-only price history and raw offer audit trail."""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from pricesync.config.settings import Settings
from pricesync.errors import BatchWriteError
from pricesync.models.match_result import MatchResult
from pricesync.models.price_record import (
    AggregatedPriceRecord,
    HistoricalOffer,
)
from pricesync.storage.database import Database
from pricesync.storage.retry import with_retry

logger = logging.getLogger("pricesync.storage")

_HISTORY_INSERT = (
    "INSERT INTO historical_offers "
    "(execution_id, variant_id, product_id, competitor, "
    " price, stock, observed_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)

_SCRAPED_INSERT = (
    "INSERT INTO scraped_offers "
    "(execution_id, competitor, source_sku, query_key, variant_id, "
    " product_id, price, stock, storage, color, condition, title, "
    " source_url, match_method, match_reason, raw_response, observed_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


@dataclass
class WriteReport:
    """Outcome of a batched append for one competitor."""

    table: str
    written: int = 0
    failed_batches: list[BatchWriteError] = field(
        default_factory=lambda: list[BatchWriteError]()
    )

    @property
    def ok(self) -> bool:
        return not self.failed_batches


class HistoryStore:
    """Writes ``historical_offers`` and ``scraped_offers`` in batches.

    Every batch is one transaction: it either lands whole or not at
    all, so retrying a failed batch never duplicates rows.
    """

    def __init__(
        self, db: Database, batch_size: int | None = None,
    ) -> None:
        self.db = db
        self.batch_size = batch_size or Settings.HISTORY_BATCH_SIZE

    # ── Writing ──────────────────────────────────────────

    def _insert_batch(
        self, sql: str, rows: list[tuple[Any, ...]],
    ) -> None:
        """Insert ``rows`` in a single transaction."""
        with self.db.lock, self.db.conn:
            self.db.conn.executemany(sql, rows)

    def _write_batches(
        self,
        table: str,
        sql: str,
        execution_id: int,
        competitor: str,
        rows: list[tuple[Any, ...]],
    ) -> WriteReport:
        report = WriteReport(table=table)
        for index, start in enumerate(
            range(0, len(rows), self.batch_size)
        ):
            batch = rows[start:start + self.batch_size]
            try:
                with_retry(
                    lambda batch=batch: self._insert_batch(sql, batch),
                    f"{table} batch {index} ({competitor})",
                )
            except sqlite3.Error as exc:
                error = BatchWriteError(
                    execution_id, competitor, index, exc,
                )
                logger.error("Batch write failed: %s", error)
                report.failed_batches.append(error)
                continue
            report.written += len(batch)

        logger.info(
            "Wrote %d/%d %s rows for %s (execution %d)",
            report.written,
            len(rows),
            table,
            competitor,
            execution_id,
        )
        return report

    def append_history(
        self,
        execution_id: int,
        competitor: str,
        records: list[AggregatedPriceRecord],
    ) -> WriteReport:
        """Append one ``historical_offers`` row per aggregated record."""
        rows = [
            (
                execution_id,
                r.variant_id,
                r.product_id,
                r.competitor,
                str(r.price),
                r.stock,
                r.observed_at.isoformat(),
            )
            for r in records
        ]
        return self._write_batches(
            "historical_offers", _HISTORY_INSERT,
            execution_id, competitor, rows,
        )

    def append_scraped(
        self,
        execution_id: int,
        competitor: str,
        results: list[MatchResult],
        observed_at: datetime,
    ) -> WriteReport:
        """Keep every normalized offer, matched or not, with its payload."""
        ts = observed_at.isoformat()
        rows = [
            (
                execution_id,
                r.offer.competitor,
                r.offer.source_sku,
                r.offer.query_key,
                r.variant_id,
                r.product_id,
                str(r.offer.price),
                r.offer.stock,
                r.offer.storage,
                r.offer.color,
                r.offer.condition,
                r.offer.title,
                r.offer.source_url,
                r.method,
                r.reason,
                json.dumps(r.offer.raw, default=str),
                ts,
            )
            for r in results
        ]
        return self._write_batches(
            "scraped_offers", _SCRAPED_INSERT,
            execution_id, competitor, rows,
        )

    # ── Querying ─────────────────────────────────────────

    def history(
        self,
        variant_id: int,
        competitor: str,
    ) -> list[HistoricalOffer]:
        """All history rows for a variant and competitor, oldest first."""
        rows = self.db.conn.execute(
            "SELECT execution_id, variant_id, product_id, competitor, "
            "       price, stock, observed_at "
            "FROM historical_offers "
            "WHERE variant_id = ? AND competitor = ? "
            "ORDER BY observed_at ASC, id ASC",
            (variant_id, competitor),
        ).fetchall()
        return [_history_from_row(r) for r in rows]

    def latest_price(
        self,
        variant_id: int,
        competitor: str,
    ) -> HistoricalOffer | None:
        """Most recent recorded price for a variant at a competitor."""
        row = self.db.conn.execute(
            "SELECT execution_id, variant_id, product_id, competitor, "
            "       price, stock, observed_at "
            "FROM historical_offers "
            "WHERE variant_id = ? AND competitor = ? "
            "ORDER BY observed_at DESC, id DESC LIMIT 1",
            (variant_id, competitor),
        ).fetchone()
        return _history_from_row(row) if row else None

    def count_history(self, execution_id: int) -> int:
        row = self.db.conn.execute(
            "SELECT COUNT(*) FROM historical_offers "
            "WHERE execution_id = ?",
            (execution_id,),
        ).fetchone()
        return int(row[0])

    def unmatched_offers(
        self, execution_id: int,
    ) -> list[dict[str, Any]]:
        """Offers of an execution that did not resolve to a variant."""
        cur = self.db.conn.execute(
            "SELECT competitor, source_sku, query_key, title, price, "
            "       stock, storage, color, condition, match_reason, "
            "       source_url "
            "FROM scraped_offers "
            "WHERE execution_id = ? AND variant_id IS NULL "
            "ORDER BY competitor, source_sku, id",
            (execution_id,),
        )
        columns = [d[0] for d in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

    def latest_execution_id(self) -> int | None:
        """Id of the newest execution that recorded any offers."""
        row = self.db.conn.execute(
            "SELECT MAX(execution_id) FROM scraped_offers",
        ).fetchone()
        return row[0] if row and row[0] is not None else None


# ── Private helpers ──────────────────────────────────────


def _history_from_row(row: tuple[Any, ...]) -> HistoricalOffer:
    return HistoricalOffer(
        execution_id=row[0],
        variant_id=row[1],
        product_id=row[2],
        competitor=row[3],
        price=Decimal(row[4]),
        stock=row[5],
        observed_at=datetime.fromisoformat(row[6]),
    )
