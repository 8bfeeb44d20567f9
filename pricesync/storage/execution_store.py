# pricesync/storage/execution_store.py

"""Persistence for executions, competitor sub-runs and competitor stats."""

import json
import logging
from datetime import datetime, timedelta
from typing import Any

from pricesync.models.execution import CompetitorRun, Execution, RunStatus
from pricesync.storage.database import Database
from pricesync.storage.retry import with_retry

logger = logging.getLogger("pricesync.storage")


class ExecutionStore:
    """Reads and writes the ``executions`` family of tables."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # ── Recording ────────────────────────────────────────

    def create_execution(
        self,
        started_at: datetime,
        trigger_source: str = "script",
    ) -> int:
        """Insert a pending execution and return its id."""

        def _insert() -> int:
            with self.db.lock, self.db.conn:
                cur = self.db.conn.execute(
                    "INSERT INTO executions "
                    "(status, trigger_source, started_at) "
                    "VALUES (?, ?, ?)",
                    (
                        RunStatus.PENDING.value,
                        trigger_source,
                        started_at.isoformat(),
                    ),
                )
                return int(cur.lastrowid or 0)

        execution_id = with_retry(_insert, "create execution")
        logger.debug("Created execution %d", execution_id)
        return execution_id

    def save_execution(self, execution: Execution) -> None:
        """Write the run-level fields of ``execution``."""

        def _update() -> None:
            with self.db.lock, self.db.conn:
                self.db.conn.execute(
                    "UPDATE executions SET status = ?, finished_at = ?, "
                    "total_runtime_ms = ?, notes = ? WHERE id = ?",
                    (
                        execution.status.value,
                        _iso(execution.finished_at),
                        execution.total_runtime_ms,
                        execution.notes,
                        execution.id,
                    ),
                )

        with_retry(_update, f"save execution {execution.id}")

    def save_competitor_run(
        self, execution_id: int, run: CompetitorRun,
    ) -> None:
        """Upsert one competitor's sub-run row."""

        def _upsert() -> None:
            with self.db.lock, self.db.conn:
                self.db.conn.execute(
                    "INSERT INTO execution_competitors "
                    "(execution_id, competitor, status, started_at, "
                    " finished_at, error, sub_errors, offer_count, "
                    " matched_count) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(execution_id, competitor) DO UPDATE SET "
                    "status = excluded.status, "
                    "started_at = excluded.started_at, "
                    "finished_at = excluded.finished_at, "
                    "error = excluded.error, "
                    "sub_errors = excluded.sub_errors, "
                    "offer_count = excluded.offer_count, "
                    "matched_count = excluded.matched_count",
                    (
                        execution_id,
                        run.competitor,
                        run.status.value,
                        _iso(run.started_at),
                        _iso(run.finished_at),
                        json.dumps(run.error) if run.error else None,
                        json.dumps(run.sub_errors),
                        run.offer_count,
                        run.matched_count,
                    ),
                )

        with_retry(
            _upsert, f"save {run.competitor} run of execution {execution_id}",
        )

    def bump_competitor_stats(self, competitor: str, failed: bool) -> None:
        """Count one more execution (and maybe failure) for a competitor."""

        def _bump() -> None:
            with self.db.lock, self.db.conn:
                self.db.conn.execute(
                    "INSERT INTO competitors "
                    "(name, total_executions, failed_executions) "
                    "VALUES (?, 1, ?) "
                    "ON CONFLICT(name) DO UPDATE SET "
                    "total_executions = total_executions + 1, "
                    "failed_executions = failed_executions "
                    "+ excluded.failed_executions",
                    (competitor, 1 if failed else 0),
                )

        with_retry(_bump, f"bump stats for {competitor}")

    def fail_stale(self, older_than: timedelta, now: datetime) -> list[int]:
        """Mark non-terminal executions older than ``older_than`` failed.

        A crashed process leaves its execution pending or running; this
        closes such rows so monitoring does not count them as live.
        """
        cutoff = (now - older_than).isoformat()
        with self.db.lock, self.db.conn:
            rows = self.db.conn.execute(
                "SELECT id FROM executions "
                "WHERE status IN (?, ?) AND started_at < ?",
                (RunStatus.PENDING.value, RunStatus.RUNNING.value, cutoff),
            ).fetchall()
            ids = [r[0] for r in rows]
            for execution_id in ids:
                self.db.conn.execute(
                    "UPDATE executions SET status = ?, finished_at = ?, "
                    "notes = CASE WHEN notes = '' THEN ? "
                    "ELSE notes || '; ' || ? END WHERE id = ?",
                    (
                        RunStatus.FAILED.value,
                        now.isoformat(),
                        "abandoned: exceeded stale-run timeout",
                        "abandoned: exceeded stale-run timeout",
                        execution_id,
                    ),
                )
        if ids:
            logger.warning("Marked %d stale executions failed", len(ids))
        return ids

    # ── Querying ─────────────────────────────────────────

    def get_execution(self, execution_id: int) -> Execution | None:
        row = self.db.conn.execute(
            "SELECT id, status, trigger_source, started_at, finished_at, "
            "       total_runtime_ms, notes "
            "FROM executions WHERE id = ?",
            (execution_id,),
        ).fetchone()
        if row is None:
            return None
        execution = _execution_from_row(row)
        execution.competitors = self._competitor_runs(execution_id)
        return execution

    def recent_executions(
        self, hours: int, now: datetime | None = None,
    ) -> list[Execution]:
        """Executions started within the last ``hours``, newest first."""
        cutoff = ((now or datetime.now()) - timedelta(hours=hours))
        rows = self.db.conn.execute(
            "SELECT id, status, trigger_source, started_at, finished_at, "
            "       total_runtime_ms, notes "
            "FROM executions WHERE started_at >= ? "
            "ORDER BY started_at DESC, id DESC",
            (cutoff.isoformat(),),
        ).fetchall()
        executions = [_execution_from_row(r) for r in rows]
        for execution in executions:
            execution.competitors = self._competitor_runs(execution.id)
        return executions

    def recent_stats(
        self, hours: int, now: datetime | None = None,
    ) -> dict[str, Any]:
        """Run counts, success rate and average runtime for a window."""
        executions = self.recent_executions(hours, now=now)
        finished = [e for e in executions if e.status.is_terminal]
        completed = [
            e for e in finished if e.status is RunStatus.COMPLETED
        ]
        runtimes = [
            e.total_runtime_ms for e in finished
            if e.total_runtime_ms is not None
        ]
        return {
            "hours": hours,
            "total": len(executions),
            "completed": len(completed),
            "failed": len(finished) - len(completed),
            "in_progress": len(executions) - len(finished),
            "success_rate": (
                len(completed) / len(finished) if finished else None
            ),
            "avg_runtime_ms": (
                sum(runtimes) / len(runtimes) if runtimes else None
            ),
        }

    def competitor_stats(self) -> list[dict[str, Any]]:
        """Lifetime execution and failure counts per competitor."""
        rows = self.db.conn.execute(
            "SELECT name, total_executions, failed_executions "
            "FROM competitors ORDER BY name",
        ).fetchall()
        return [
            {
                "competitor": r[0],
                "total_executions": r[1],
                "failed_executions": r[2],
            }
            for r in rows
        ]

    def _competitor_runs(
        self, execution_id: int,
    ) -> dict[str, CompetitorRun]:
        rows = self.db.conn.execute(
            "SELECT competitor, status, started_at, finished_at, error, "
            "       sub_errors, offer_count, matched_count "
            "FROM execution_competitors WHERE execution_id = ? "
            "ORDER BY competitor",
            (execution_id,),
        ).fetchall()
        return {
            r[0]: CompetitorRun(
                competitor=r[0],
                status=RunStatus(r[1]),
                started_at=_parse(r[2]),
                finished_at=_parse(r[3]),
                error=json.loads(r[4]) if r[4] else None,
                sub_errors=json.loads(r[5] or "[]"),
                offer_count=r[6],
                matched_count=r[7],
            )
            for r in rows
        }


# ── Private helpers ──────────────────────────────────────


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _execution_from_row(row: tuple[Any, ...]) -> Execution:
    return Execution(
        id=row[0],
        status=RunStatus(row[1]),
        trigger_source=row[2],
        started_at=datetime.fromisoformat(row[3]),
        finished_at=_parse(row[4]),
        total_runtime_ms=row[5],
        notes=row[6] or "",
    )
