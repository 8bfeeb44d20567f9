# tests/test_execution_tracker.py

"""Tests for the execution state machine and its store."""

import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path

from pricesync.errors import AdapterError, InvalidTransition
from pricesync.models.execution import RunStatus
from pricesync.services.execution_tracker import ExecutionTracker
from pricesync.storage.database import Database
from pricesync.storage.execution_store import ExecutionStore

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestExecutionTracker(unittest.TestCase):
    """Transitions are validated and persisted immediately."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = Database(db_path=Path(self.tmp_dir) / "test.db")
        self.store = ExecutionStore(self.db)
        self.tracker = ExecutionTracker(
            self.store, ["reebelo", "green-gadgets"], clock=lambda: NOW,
        )

    def tearDown(self) -> None:
        self.db.close()

    def _stored(self) -> dict[str, RunStatus]:
        execution = self.store.get_execution(self.tracker.execution_id)
        assert execution is not None
        statuses = {
            name: run.status for name, run in execution.competitors.items()
        }
        statuses["run"] = execution.status
        return statuses

    def test_created_pending(self) -> None:
        self.assertEqual(
            self._stored(),
            {
                "run": RunStatus.PENDING,
                "reebelo": RunStatus.PENDING,
                "green-gadgets": RunStatus.PENDING,
            },
        )

    def test_first_competitor_starts_run(self) -> None:
        self.tracker.competitor_started("reebelo")

        stored = self._stored()
        self.assertEqual(stored["run"], RunStatus.RUNNING)
        self.assertEqual(stored["reebelo"], RunStatus.RUNNING)
        self.assertEqual(stored["green-gadgets"], RunStatus.PENDING)

    def test_all_completed_completes_run(self) -> None:
        for name in ("reebelo", "green-gadgets"):
            self.tracker.competitor_started(name)
        self.tracker.competitor_completed(
            "reebelo", 3, 2, sub_errors=["B: HTTP 500"],
        )
        self.tracker.competitor_completed("green-gadgets", 0, 0)

        execution = self.tracker.finish()

        self.assertEqual(execution.status, RunStatus.COMPLETED)
        self.assertIsNotNone(execution.total_runtime_ms)
        stored = self.store.get_execution(execution.id)
        assert stored is not None
        self.assertEqual(stored.status, RunStatus.COMPLETED)
        self.assertEqual(
            stored.competitors["reebelo"].sub_errors, ["B: HTTP 500"],
        )
        self.assertEqual(stored.competitors["reebelo"].matched_count, 2)

    def test_partial_failure_fails_run_with_note(self) -> None:
        for name in ("reebelo", "green-gadgets"):
            self.tracker.competitor_started(name)
        self.tracker.competitor_failed(
            "reebelo", AdapterError("API key rejected"),
        )
        self.tracker.competitor_completed("green-gadgets", 3, 3)

        execution = self.tracker.finish()

        self.assertEqual(execution.status, RunStatus.FAILED)
        self.assertIn("partial", execution.notes)
        self.assertIn("reebelo", execution.notes)
        stored = self.store.get_execution(execution.id)
        assert stored is not None
        self.assertEqual(
            stored.competitors["reebelo"].error,
            {"type": "AdapterError", "message": "API key rejected"},
        )

    def test_competitor_stats_counted(self) -> None:
        for name in ("reebelo", "green-gadgets"):
            self.tracker.competitor_started(name)
        self.tracker.competitor_failed("reebelo", AdapterError("down"))
        self.tracker.competitor_completed("green-gadgets")

        stats = {s["competitor"]: s for s in self.store.competitor_stats()}

        self.assertEqual(stats["reebelo"]["total_executions"], 1)
        self.assertEqual(stats["reebelo"]["failed_executions"], 1)
        self.assertEqual(stats["green-gadgets"]["failed_executions"], 0)

    def test_terminal_state_is_final(self) -> None:
        self.tracker.competitor_started("reebelo")
        self.tracker.competitor_completed("reebelo")

        with self.assertRaises(InvalidTransition):
            self.tracker.competitor_failed("reebelo", AdapterError("late"))

    def test_cannot_complete_pending_competitor(self) -> None:
        with self.assertRaises(InvalidTransition):
            self.tracker.competitor_completed("reebelo")

    def test_finish_requires_terminal_competitors(self) -> None:
        self.tracker.competitor_started("reebelo")
        with self.assertRaises(InvalidTransition):
            self.tracker.finish()

    def test_unknown_competitor(self) -> None:
        with self.assertRaises(InvalidTransition):
            self.tracker.competitor_started("nobody")

    def test_abort_fails_open_competitors(self) -> None:
        self.tracker.competitor_started("reebelo")

        execution = self.tracker.abort(RuntimeError("boom"))

        self.assertEqual(execution.status, RunStatus.FAILED)
        self.assertEqual(
            self._stored(),
            {
                "run": RunStatus.FAILED,
                "reebelo": RunStatus.FAILED,
                "green-gadgets": RunStatus.FAILED,
            },
        )


class TestExecutionStore(unittest.TestCase):
    """Monitoring queries over stored executions."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = Database(db_path=Path(self.tmp_dir) / "test.db")
        self.store = ExecutionStore(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def _finished(self, started_at: datetime, ok: bool) -> int:
        tracker = ExecutionTracker(
            self.store, ["X"], clock=lambda: started_at,
        )
        tracker.competitor_started("X")
        if ok:
            tracker.competitor_completed("X")
        else:
            tracker.competitor_failed("X", AdapterError("down"))
        return tracker.finish().id

    def test_recent_stats(self) -> None:
        self._finished(NOW - timedelta(hours=1), ok=True)
        self._finished(NOW - timedelta(hours=2), ok=False)
        self._finished(NOW - timedelta(hours=30), ok=False)

        stats = self.store.recent_stats(24, now=NOW)

        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["completed"], 1)
        self.assertEqual(stats["failed"], 1)
        self.assertEqual(stats["success_rate"], 0.5)

    def test_recent_executions_newest_first(self) -> None:
        older = self._finished(NOW - timedelta(hours=2), ok=True)
        newer = self._finished(NOW - timedelta(hours=1), ok=True)

        ids = [e.id for e in self.store.recent_executions(24, now=NOW)]

        self.assertEqual(ids, [newer, older])

    def test_fail_stale_closes_old_running_runs(self) -> None:
        tracker = ExecutionTracker(
            self.store, ["X"], clock=lambda: NOW - timedelta(hours=5),
        )
        tracker.competitor_started("X")
        fresh = ExecutionTracker(self.store, ["X"], clock=lambda: NOW)

        closed = self.store.fail_stale(timedelta(hours=3), NOW)

        self.assertEqual(closed, [tracker.execution_id])
        stale = self.store.get_execution(tracker.execution_id)
        assert stale is not None
        self.assertEqual(stale.status, RunStatus.FAILED)
        self.assertIn("stale", stale.notes)
        untouched = self.store.get_execution(fresh.execution_id)
        assert untouched is not None
        self.assertEqual(untouched.status, RunStatus.PENDING)


if __name__ == "__main__":
    unittest.main()
