# pricesync/storage/database.py

"""SQLite connection and schema shared by every pricesync store."""

import logging
import sqlite3
import threading
from pathlib import Path

from pricesync.config.settings import Settings

logger = logging.getLogger("pricesync.storage")

CATALOG_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id  TEXT    NOT NULL UNIQUE,
    title        TEXT    NOT NULL,
    vendor       TEXT,
    product_type TEXT,
    created_at   TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS variants (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id  TEXT    NOT NULL UNIQUE,
    product_id   INTEGER NOT NULL
                 REFERENCES products(id) ON DELETE CASCADE,
    sku          TEXT,
    storage      TEXT,
    color        TEXT,
    condition    TEXT,
    created_at   TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_variants_sku ON variants(sku);

CREATE TABLE IF NOT EXISTS variant_mappings (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    competitor     TEXT    NOT NULL,
    competitor_sku TEXT    NOT NULL,
    variant_id     INTEGER NOT NULL
                   REFERENCES variants(id) ON DELETE CASCADE,
    product_handle TEXT,
    UNIQUE (competitor, competitor_sku)
);
"""

SYNC_SCHEMA = """\
CREATE TABLE IF NOT EXISTS competitors (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    name              TEXT    NOT NULL UNIQUE,
    total_executions  INTEGER NOT NULL DEFAULT 0,
    failed_executions INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS executions (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    status           TEXT    NOT NULL,
    trigger_source   TEXT    NOT NULL DEFAULT 'script',
    started_at       TEXT    NOT NULL,
    finished_at      TEXT,
    total_runtime_ms INTEGER,
    notes            TEXT    NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS execution_competitors (
    execution_id  INTEGER NOT NULL
                  REFERENCES executions(id) ON DELETE CASCADE,
    competitor    TEXT    NOT NULL,
    status        TEXT    NOT NULL,
    started_at    TEXT,
    finished_at   TEXT,
    error         TEXT,
    sub_errors    TEXT    NOT NULL DEFAULT '[]',
    offer_count   INTEGER NOT NULL DEFAULT 0,
    matched_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (execution_id, competitor)
);

CREATE TABLE IF NOT EXISTS scraped_offers (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    execution_id  INTEGER NOT NULL REFERENCES executions(id),
    competitor    TEXT    NOT NULL,
    source_sku    TEXT    NOT NULL,
    query_key     TEXT    NOT NULL,
    variant_id    INTEGER,
    product_id    INTEGER,
    price         TEXT    NOT NULL,
    stock         INTEGER NOT NULL,
    storage       TEXT,
    color         TEXT,
    condition     TEXT,
    title         TEXT,
    source_url    TEXT,
    match_method  TEXT,
    match_reason  TEXT,
    raw_response  TEXT,
    observed_at   TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scraped_execution
    ON scraped_offers(execution_id, competitor);

CREATE TABLE IF NOT EXISTS historical_offers (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    execution_id INTEGER NOT NULL REFERENCES executions(id),
    variant_id   INTEGER NOT NULL,
    product_id   INTEGER,
    competitor   TEXT    NOT NULL,
    price        TEXT    NOT NULL,
    stock        INTEGER NOT NULL,
    observed_at  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_variant_competitor
    ON historical_offers(variant_id, competitor, observed_at);
"""


class Database:
    """One SQLite connection plus the lock that serialises writers.

    Competitor workers run on separate threads, so every write goes
    through ``lock``; reads of committed data do not need it.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        create_catalog: bool = True,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.lock = threading.RLock()
        self.conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        if create_catalog:
            self.conn.executescript(CATALOG_SCHEMA)
        self.conn.executescript(SYNC_SCHEMA)
        logger.debug("Database opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def unique_columns(self, table: str) -> list[tuple[str, ...]]:
        """Column sets covered by a unique index or constraint on ``table``."""
        result: list[tuple[str, ...]] = []
        for row in self.conn.execute(f"PRAGMA index_list({table})"):
            name, is_unique = row[1], row[2]
            if not is_unique:
                continue
            columns = tuple(
                info[2]
                for info in self.conn.execute(f"PRAGMA index_info({name})")
            )
            result.append(columns)
        return result
