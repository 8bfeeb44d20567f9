# pricesync/services/sync_orchestrator.py

"""Orchestrates one competitor price sync run."""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pricesync.config.logging_config import bind_execution
from pricesync.config.settings import Settings
from pricesync.errors import AdapterError
from pricesync.filters.aggregator import PriceAggregator
from pricesync.filters.offer_validator import OfferValidator
from pricesync.matching.catalog_index import CatalogIndex
from pricesync.matching.matcher import Matcher
from pricesync.models.execution import RunStatus
from pricesync.models.match_result import MatchResult
from pricesync.models.offer import Offer, RawRecord
from pricesync.services.execution_tracker import ExecutionTracker
from pricesync.services.registry import load_object, resolve_competitors
from pricesync.storage.catalog_store import CatalogStore
from pricesync.storage.database import Database
from pricesync.storage.execution_store import ExecutionStore
from pricesync.storage.file_manager import FileManager
from pricesync.storage.history_store import HistoryStore

logger = logging.getLogger("pricesync.orchestrator")

Normalizer = Callable[[RawRecord], Offer | None]


@dataclass
class CompetitorOutcome:
    """What one competitor worker produced before persistence."""

    competitor: str
    results: list[MatchResult] = field(
        default_factory=lambda: list[MatchResult]()
    )
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    keys: int = 0
    dropped: int = 0
    failed: bool = False
    error: str | None = None

    @property
    def matched_count(self) -> int:
        return sum(1 for r in self.results if r.matched)


@dataclass
class RunSummary:
    """Container for a finished sync run."""

    execution_id: int
    status: RunStatus
    notes: str = ""
    outcomes: dict[str, CompetitorOutcome] = field(
        default_factory=lambda: dict[str, CompetitorOutcome]()
    )
    records_written: int = 0
    batch_errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    unmatched_count: int = 0
    report_path: Path | None = None
    total_runtime_ms: int | None = None

    @property
    def exit_code(self) -> int:
        """0 when every competitor completed and every batch landed."""
        if self.status is RunStatus.COMPLETED and not self.batch_errors:
            return 0
        return 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "status": self.status.value,
            "notes": self.notes,
            "records_written": self.records_written,
            "unmatched_count": self.unmatched_count,
            "batch_errors": self.batch_errors,
            "total_runtime_ms": self.total_runtime_ms,
            "report_path": str(self.report_path) if self.report_path else None,
            "competitors": {
                name: {
                    "status": "failed" if o.failed else "completed",
                    "keys": o.keys,
                    "offers": len(o.results),
                    "matched": o.matched_count,
                    "dropped": o.dropped,
                    "errors": o.errors,
                    "error": o.error,
                }
                for name, o in self.outcomes.items()
            },
        }


def _dedupe(keys: list[str]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for key in keys:
        key = key.strip()
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result


class SyncOrchestrator:
    """Coordinates adapters, matching, aggregation and persistence.

    All configuration problems (unknown competitor, missing credentials,
    an unsafe upsert setup) surface as ``ConfigurationError`` before any
    request is sent.
    """

    def __init__(
        self,
        db: Database | None = None,
        file_manager: FileManager | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = Settings()
        self.db = db or Database()
        self.catalog_store = CatalogStore(self.db)
        self.execution_store = ExecutionStore(self.db)
        self.history_store = HistoryStore(self.db)
        self.file_manager = file_manager
        self._clock = clock
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Ask running adapters to stop at their next call boundary."""
        logger.warning("Cancellation requested")
        self._cancel_event.set()

    # ── Private helpers ──────────────────────────────────

    def _query_keys(
        self, entry: dict[str, str], catalog: CatalogIndex,
    ) -> list[str]:
        """Deduplicated query keys for one competitor."""
        competitor = entry["id"]
        if entry.get("query_kind") == "handle":
            keys = catalog.competitor_handles(competitor)
        else:
            keys = catalog.competitor_skus(competitor) + catalog.variant_skus()
        extra = entry.get("extra_keys")
        if extra:
            keys = keys + list(getattr(self.settings, extra, []))
        return _dedupe(keys)

    def _normalize(
        self,
        competitor: str,
        normalizer: Normalizer,
        records: list[RawRecord],
    ) -> tuple[list[Offer], int]:
        """Normalize raw records; a record that cannot be read is dropped."""
        offers: list[Offer] = []
        dropped = 0
        for record in records:
            try:
                offer = normalizer(record)
            except Exception:
                logger.warning(
                    "[%s] Normalizer failed on %s",
                    competitor,
                    record.query_key,
                    exc_info=True,
                )
                offer = None
            if offer is None:
                dropped += 1
                continue
            offers.append(offer)
        return offers, dropped

    async def _run_competitor(
        self,
        entry: dict[str, str],
        adapter: Any,
        normalizer: Normalizer,
        keys: list[str],
        matcher: Matcher,
        tracker: ExecutionTracker,
    ) -> CompetitorOutcome:
        """Fetch, normalize, validate and match for one competitor."""
        competitor = entry["id"]
        outcome = CompetitorOutcome(competitor=competitor, keys=len(keys))
        await asyncio.to_thread(tracker.competitor_started, competitor)

        try:
            fetched = await asyncio.to_thread(
                adapter.fetch_offers, keys, self._cancel_event,
            )
        except AdapterError as exc:
            outcome.failed = True
            outcome.error = str(exc)
            await asyncio.to_thread(tracker.competitor_failed, competitor, exc)
            return outcome
        except Exception as exc:
            logger.error(
                "[%s] Unexpected adapter error: %s",
                competitor,
                exc,
                exc_info=True,
            )
            outcome.failed = True
            outcome.error = str(exc)
            await asyncio.to_thread(tracker.competitor_failed, competitor, exc)
            return outcome

        outcome.errors = list(fetched.errors)
        offers, unreadable = self._normalize(
            competitor, normalizer, fetched.records,
        )
        valid, invalid = OfferValidator.validate(offers)
        outcome.dropped = unreadable + invalid
        outcome.results = matcher.match_all(valid)

        await asyncio.to_thread(
            tracker.competitor_completed,
            competitor,
            len(outcome.results),
            outcome.matched_count,
            outcome.errors,
        )
        return outcome

    def _persist(
        self,
        summary: RunSummary,
        tracker: ExecutionTracker,
        observed_at: datetime,
    ) -> None:
        """Write history and audit rows, batch scoped per competitor."""
        execution_id = tracker.execution_id
        all_results = [
            r for o in summary.outcomes.values() for r in o.results
        ]
        records = PriceAggregator.aggregate(all_results, observed_at)

        for competitor, outcome in summary.outcomes.items():
            if outcome.failed:
                continue
            own = [r for r in records if r.competitor == competitor]
            history = self.history_store.append_history(
                execution_id, competitor, own,
            )
            summary.records_written += history.written
            scraped = self.history_store.append_scraped(
                execution_id, competitor, outcome.results, observed_at,
            )
            for error in history.failed_batches + scraped.failed_batches:
                summary.batch_errors.append(str(error))

        if summary.batch_errors:
            tracker.add_note(
                f"persistence: {len(summary.batch_errors)} batch(es) failed"
            )

    def _export_reconciliation(self, summary: RunSummary) -> None:
        unmatched = self.history_store.unmatched_offers(summary.execution_id)
        summary.unmatched_count = len(unmatched)
        if self.file_manager is None or not unmatched:
            return
        try:
            summary.report_path = self.file_manager.export_unmatched_csv(
                summary.execution_id, unmatched,
            )
        except OSError as exc:
            logger.error(
                "Reconciliation export failed: %s", exc, exc_info=True,
            )

    # ── Run entry point ──────────────────────────────────

    async def run(
        self,
        competitor_ids: list[str] | None = None,
        trigger_source: str = "script",
    ) -> RunSummary:
        """Run a sync for the given competitors (default: all).

        Competitors are fetched concurrently and aggregated only once
        every one of them reached a terminal state.
        """
        entries = resolve_competitors(competitor_ids)

        # Build every component up front so configuration errors abort
        # before any external call.
        adapters = {e["id"]: load_object(e["adapter"])() for e in entries}
        normalizers: dict[str, Normalizer] = {
            e["id"]: load_object(e["normalizer"]) for e in entries
        }

        catalog = self.catalog_store.snapshot()
        matcher = Matcher(
            catalog,
            title_fallback=frozenset(
                e["id"] for e in entries if e.get("query_kind") == "handle"
            ),
        )
        keys = {e["id"]: self._query_keys(e, catalog) for e in entries}

        tracker = ExecutionTracker(
            self.execution_store,
            [e["id"] for e in entries],
            trigger_source=trigger_source,
            clock=self._clock,
        )
        bind_execution(tracker.execution_id)
        summary = RunSummary(
            execution_id=tracker.execution_id,
            status=RunStatus.PENDING,
        )

        try:
            outcomes = await asyncio.gather(
                *(
                    self._run_competitor(
                        e,
                        adapters[e["id"]],
                        normalizers[e["id"]],
                        keys[e["id"]],
                        matcher,
                        tracker,
                    )
                    for e in entries
                ),
            )
            summary.outcomes = {o.competitor: o for o in outcomes}

            await asyncio.to_thread(
                self._persist, summary, tracker, self._clock(),
            )
            await asyncio.to_thread(self._export_reconciliation, summary)
            execution = await asyncio.to_thread(tracker.finish)
        except BaseException as exc:
            logger.critical(
                "Execution %d aborted: %s",
                tracker.execution_id,
                exc,
                exc_info=True,
            )
            tracker.abort(exc)
            bind_execution(None)
            raise

        summary.status = execution.status
        summary.notes = execution.notes
        summary.total_runtime_ms = execution.total_runtime_ms
        logger.info(
            "Execution %d finished %s in %sms: %d records, %d unmatched",
            summary.execution_id,
            summary.status.value,
            summary.total_runtime_ms,
            summary.records_written,
            summary.unmatched_count,
        )
        bind_execution(None)
        return summary
