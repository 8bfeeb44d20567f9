# pricesync/services/execution_tracker.py

"""Run and per-competitor lifecycle state machine."""

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime

from pricesync.errors import InvalidTransition
from pricesync.models.execution import (
    TRANSITIONS,
    CompetitorRun,
    Execution,
    RunStatus,
)
from pricesync.storage.execution_store import ExecutionStore

logger = logging.getLogger("pricesync.tracker")


def _check(subject: str, current: RunStatus, target: RunStatus) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"{subject}: {current.value} -> {target.value} is not allowed"
        )


class ExecutionTracker:
    """Owns one execution and persists every status change immediately.

    Transitions are serialised by a lock, so competitor workers running
    on different threads may report concurrently.  Each competitor's
    sub-status should only be reported by the worker that owns it.
    """

    def __init__(
        self,
        store: ExecutionStore,
        competitors: list[str],
        trigger_source: str = "script",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._started_monotonic = time.monotonic()

        started_at = clock()
        execution_id = store.create_execution(started_at, trigger_source)
        self.execution = Execution(
            id=execution_id,
            status=RunStatus.PENDING,
            started_at=started_at,
            trigger_source=trigger_source,
            competitors={
                name: CompetitorRun(competitor=name) for name in competitors
            },
        )
        for run in self.execution.competitors.values():
            store.save_competitor_run(execution_id, run)
        logger.info(
            "Execution %d created for %s",
            execution_id,
            ", ".join(competitors),
        )

    @property
    def execution_id(self) -> int:
        return self.execution.id

    def _run(self, competitor: str) -> CompetitorRun:
        try:
            return self.execution.competitors[competitor]
        except KeyError:
            raise InvalidTransition(
                f"competitor {competitor!r} is not part of execution "
                f"{self.execution.id}"
            ) from None

    def _set_run_status(self, target: RunStatus) -> None:
        _check(f"execution {self.execution.id}", self.execution.status, target)
        self.execution.status = target
        if target.is_terminal:
            self.execution.finished_at = self._clock()
            self.execution.total_runtime_ms = int(
                (time.monotonic() - self._started_monotonic) * 1000
            )
        self.store.save_execution(self.execution)
        logger.info(
            "Execution %d -> %s", self.execution.id, target.value,
        )

    # ── Competitor transitions ───────────────────────────

    def competitor_started(self, competitor: str) -> None:
        """Mark a competitor running; the first one also starts the run."""
        with self._lock:
            run = self._run(competitor)
            _check(competitor, run.status, RunStatus.RUNNING)
            run.status = RunStatus.RUNNING
            run.started_at = self._clock()
            self.store.save_competitor_run(self.execution.id, run)
            if self.execution.status is RunStatus.PENDING:
                self._set_run_status(RunStatus.RUNNING)

    def competitor_completed(
        self,
        competitor: str,
        offer_count: int = 0,
        matched_count: int = 0,
        sub_errors: list[str] | None = None,
    ) -> None:
        """Mark a competitor completed; skipped keys stay as sub-errors."""
        with self._lock:
            run = self._run(competitor)
            _check(competitor, run.status, RunStatus.COMPLETED)
            run.status = RunStatus.COMPLETED
            run.finished_at = self._clock()
            run.offer_count = offer_count
            run.matched_count = matched_count
            run.sub_errors = list(sub_errors or [])
            self.store.save_competitor_run(self.execution.id, run)
            self.store.bump_competitor_stats(competitor, failed=False)
        logger.info(
            "[%s] completed: %d offers, %d matched, %d sub-errors",
            competitor,
            offer_count,
            matched_count,
            len(run.sub_errors),
        )

    def competitor_failed(
        self,
        competitor: str,
        error: BaseException,
        sub_errors: list[str] | None = None,
    ) -> None:
        """Mark a competitor failed with a structured error payload."""
        with self._lock:
            run = self._run(competitor)
            _check(competitor, run.status, RunStatus.FAILED)
            run.status = RunStatus.FAILED
            run.finished_at = self._clock()
            run.error = {
                "type": type(error).__name__,
                "message": str(error),
            }
            if sub_errors:
                run.sub_errors = list(sub_errors)
            self.store.save_competitor_run(self.execution.id, run)
            self.store.bump_competitor_stats(competitor, failed=True)
        logger.error("[%s] failed: %s", competitor, error)

    # ── Run transitions ──────────────────────────────────

    def add_note(self, note: str) -> None:
        """Append a free-text note to the execution."""
        with self._lock:
            self.execution.notes = (
                f"{self.execution.notes}; {note}"
                if self.execution.notes else note
            )
            self.store.save_execution(self.execution)

    def finish(self) -> Execution:
        """Close the run once every competitor is terminal.

        The run completes only when every competitor completed.  Any
        failed competitor makes the run ``failed`` with a note naming the
        partial outcome.
        """
        with self._lock:
            runs = list(self.execution.competitors.values())
            open_runs = [r.competitor for r in runs if not r.status.is_terminal]
            if open_runs:
                raise InvalidTransition(
                    f"execution {self.execution.id}: competitors still "
                    f"open: {', '.join(open_runs)}"
                )
            failed = [
                r.competitor for r in runs if r.status is RunStatus.FAILED
            ]
            if not failed:
                self._set_run_status(RunStatus.COMPLETED)
                return self.execution

            completed = len(runs) - len(failed)
            note = (
                f"partial: {completed}/{len(runs)} competitors completed; "
                f"failed: {', '.join(sorted(failed))}"
            )
            self.execution.notes = (
                f"{self.execution.notes}; {note}"
                if self.execution.notes else note
            )
            self._set_run_status(RunStatus.FAILED)
            return self.execution

    def abort(self, error: BaseException) -> Execution:
        """Fail the run and every competitor still open."""
        with self._lock:
            for run in self.execution.competitors.values():
                if run.status.is_terminal:
                    continue
                run.status = RunStatus.FAILED
                run.finished_at = self._clock()
                run.error = {
                    "type": type(error).__name__,
                    "message": str(error),
                }
                self.store.save_competitor_run(self.execution.id, run)
                self.store.bump_competitor_stats(run.competitor, failed=True)
            note = f"aborted: {error}"
            self.execution.notes = (
                f"{self.execution.notes}; {note}"
                if self.execution.notes else note
            )
            if not self.execution.status.is_terminal:
                self._set_run_status(RunStatus.FAILED)
            return self.execution
