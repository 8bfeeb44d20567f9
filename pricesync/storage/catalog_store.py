# pricesync/storage/catalog_store.py

"""Catalog mirror: products, variants and operator mappings.

Upserts are keyed on ``external_id``.  Whether the backend can do that
in one statement depends on a unique index existing on the key column,
so the store probes for it once at construction and sticks with the
chosen strategy for its whole lifetime.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pricesync.config.settings import Settings
from pricesync.errors import ConfigurationError
from pricesync.matching.catalog_index import CatalogIndex
from pricesync.models.catalog import (
    CatalogProduct,
    CatalogVariant,
    VariantMapping,
)
from pricesync.storage.database import Database
from pricesync.storage.retry import with_retry

logger = logging.getLogger("pricesync.storage")


@dataclass(frozen=True)
class _Table:
    """Columns of an upsertable catalog table."""

    name: str
    # Overwritten on every upsert
    replace: tuple[str, ...]
    # Only filled when the stored value is NULL
    backfill: tuple[str, ...]

    @property
    def columns(self) -> tuple[str, ...]:
        return ("external_id",) + self.replace + self.backfill


PRODUCTS = _Table(
    name="products",
    replace=("title",),
    backfill=("vendor", "product_type"),
)

VARIANTS = _Table(
    name="variants",
    replace=("product_id",),
    backfill=("sku", "storage", "color", "condition"),
)


class BulkUpsert:
    """``INSERT ... ON CONFLICT DO UPDATE`` in one statement per batch."""

    name = "bulk"

    def upsert(
        self,
        conn: sqlite3.Connection,
        table: _Table,
        rows: list[dict[str, Any]],
        created_at: str,
    ) -> None:
        columns = table.columns + ("created_at",)
        updates = [f"{c} = excluded.{c}" for c in table.replace] + [
            f"{c} = COALESCE({table.name}.{c}, excluded.{c})"
            for c in table.backfill
        ]
        sql = (
            f"INSERT INTO {table.name} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT(external_id) DO UPDATE SET {', '.join(updates)}"
        )
        conn.executemany(
            sql,
            [
                tuple(row.get(c) for c in table.columns) + (created_at,)
                for row in rows
            ],
        )


class RowByRowUpsert:
    """Select-then-write per row, for stores without the unique index."""

    name = "row-by-row"

    def upsert(
        self,
        conn: sqlite3.Connection,
        table: _Table,
        rows: list[dict[str, Any]],
        created_at: str,
    ) -> None:
        for row in rows:
            existing = conn.execute(
                f"SELECT id FROM {table.name} WHERE external_id = ? "
                "ORDER BY id LIMIT 1",
                (row["external_id"],),
            ).fetchone()
            if existing is None:
                columns = table.columns + ("created_at",)
                conn.execute(
                    f"INSERT INTO {table.name} ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})",
                    tuple(row.get(c) for c in table.columns)
                    + (created_at,),
                )
                continue
            updates = [f"{c} = ?" for c in table.replace] + [
                f"{c} = COALESCE({c}, ?)" for c in table.backfill
            ]
            conn.execute(
                f"UPDATE {table.name} SET {', '.join(updates)} "
                "WHERE id = ?",
                tuple(row.get(c) for c in table.replace + table.backfill)
                + (existing[0],),
            )


def select_upsert_strategy(
    db: Database, require_bulk: bool | None = None,
) -> BulkUpsert | RowByRowUpsert:
    """Pick the upsert strategy the store can safely support.

    Raises ``ConfigurationError`` when the unique index is missing and
    bulk upserts are required.
    """
    if require_bulk is None:
        require_bulk = Settings.REQUIRE_BULK_UPSERT
    missing = [
        table.name for table in (PRODUCTS, VARIANTS)
        if ("external_id",) not in db.unique_columns(table.name)
    ]
    if not missing:
        logger.debug("Catalog upserts: bulk")
        return BulkUpsert()
    if require_bulk:
        raise ConfigurationError(
            "No unique index on external_id for: "
            + ", ".join(missing)
            + "; bulk upserts are required"
        )
    logger.warning(
        "No unique index on external_id for %s; "
        "falling back to row-by-row upserts",
        ", ".join(missing),
    )
    return RowByRowUpsert()


class CatalogStore:
    """Mirror of the merchant catalog and the competitor mappings."""

    def __init__(
        self, db: Database, require_bulk: bool | None = None,
    ) -> None:
        self.db = db
        self.strategy = select_upsert_strategy(db, require_bulk)

    # ── Upserts ──────────────────────────────────────────

    def _run_upsert(
        self, table: _Table, rows: list[dict[str, Any]],
    ) -> None:
        created_at = datetime.now().isoformat()

        def _write() -> None:
            with self.db.lock, self.db.conn:
                self.strategy.upsert(self.db.conn, table, rows, created_at)

        with_retry(_write, f"upsert {table.name}")

    def upsert_products(self, products: list[CatalogProduct]) -> int:
        """Insert or update products by ``external_id``.

        Titles are replaced; vendor and product type only fill gaps.
        """
        rows = [
            {
                "external_id": p.external_id,
                "title": p.title,
                "vendor": p.vendor,
                "product_type": p.product_type,
            }
            for p in products
        ]
        if rows:
            self._run_upsert(PRODUCTS, rows)
            logger.info(
                "Upserted %d products (%s)", len(rows), self.strategy.name,
            )
        return len(rows)

    def upsert_variants(self, variants: list[CatalogVariant]) -> int:
        """Insert or update variants; those with an unknown product are skipped."""
        product_ids = self._product_ids()
        rows: list[dict[str, Any]] = []
        for v in variants:
            product_id = product_ids.get(v.product_external_id)
            if product_id is None:
                logger.warning(
                    "Skipping variant %s: unknown product %s",
                    v.external_id,
                    v.product_external_id,
                )
                continue
            rows.append({
                "external_id": v.external_id,
                "product_id": product_id,
                "sku": v.sku,
                "storage": v.storage,
                "color": v.color,
                "condition": v.condition,
            })
        if rows:
            self._run_upsert(VARIANTS, rows)
            logger.info(
                "Upserted %d variants (%s)", len(rows), self.strategy.name,
            )
        return len(rows)

    def save_mapping(
        self,
        competitor: str,
        competitor_sku: str,
        variant_id: int,
        product_handle: str | None = None,
    ) -> None:
        """Create or repoint an operator mapping."""
        with self.db.lock, self.db.conn:
            self.db.conn.execute(
                "INSERT INTO variant_mappings "
                "(competitor, competitor_sku, variant_id, product_handle) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(competitor, competitor_sku) DO UPDATE SET "
                "variant_id = excluded.variant_id, "
                "product_handle = excluded.product_handle",
                (competitor, competitor_sku, variant_id, product_handle),
            )

    # ── Reading ──────────────────────────────────────────

    def _product_ids(self) -> dict[str, int]:
        rows = self.db.conn.execute(
            "SELECT external_id, MIN(id) FROM products GROUP BY external_id",
        ).fetchall()
        return {r[0]: r[1] for r in rows}

    def load_products(self) -> list[CatalogProduct]:
        rows = self.db.conn.execute(
            "SELECT id, external_id, title, vendor, product_type "
            "FROM products ORDER BY id",
        ).fetchall()
        return [
            CatalogProduct(
                id=r[0],
                external_id=r[1],
                title=r[2],
                vendor=r[3],
                product_type=r[4],
            )
            for r in rows
        ]

    def load_variants(self) -> list[CatalogVariant]:
        rows = self.db.conn.execute(
            "SELECT v.id, v.external_id, v.product_id, p.external_id, "
            "       v.sku, v.storage, v.color, v.condition "
            "FROM variants v JOIN products p ON p.id = v.product_id "
            "ORDER BY v.id",
        ).fetchall()
        return [
            CatalogVariant(
                id=r[0],
                external_id=r[1],
                product_id=r[2],
                product_external_id=r[3],
                sku=r[4],
                storage=r[5],
                color=r[6],
                condition=r[7],
            )
            for r in rows
        ]

    def load_mappings(self) -> list[VariantMapping]:
        rows = self.db.conn.execute(
            "SELECT m.competitor, m.competitor_sku, m.variant_id, "
            "       v.product_id, m.product_handle "
            "FROM variant_mappings m "
            "LEFT JOIN variants v ON v.id = m.variant_id "
            "ORDER BY m.id",
        ).fetchall()
        return [
            VariantMapping(
                competitor=r[0],
                competitor_sku=r[1],
                variant_id=r[2],
                product_id=r[3],
                product_handle=r[4],
            )
            for r in rows
        ]

    def snapshot(self) -> CatalogIndex:
        """Read the whole catalog into an immutable per-run index."""
        return CatalogIndex(
            self.load_products(),
            self.load_variants(),
            self.load_mappings(),
        )
