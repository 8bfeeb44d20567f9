# tests/test_runner.py

"""Tests for the CLI command exit codes."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from pricesync.cli.runner import EXIT_CONFIG_ERROR, cli_sync, run_reconcile
from pricesync.errors import ConfigurationError
from pricesync.models.execution import RunStatus
from pricesync.services.sync_orchestrator import RunSummary
from pricesync.storage.database import Database


class TestCliSync(unittest.IsolatedAsyncioTestCase):
    """cli_sync maps run outcomes onto process exit codes."""

    def setUp(self) -> None:
        patcher = patch("pricesync.cli.runner.Database")
        self.mock_database = patcher.start()
        self.addCleanup(patcher.stop)

        patcher = patch("pricesync.cli.runner.FileManager")
        self.mock_filemanager = patcher.start()
        self.addCleanup(patcher.stop)

        patcher = patch("pricesync.cli.runner.SyncOrchestrator")
        self.mock_orch_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.mock_orch = MagicMock()
        self.mock_orch_cls.return_value = self.mock_orch

    async def test_completed_run_exits_zero(self) -> None:
        self.mock_orch.run = AsyncMock(
            return_value=RunSummary(execution_id=1, status=RunStatus.COMPLETED),
        )

        code = await cli_sync(None)

        self.assertEqual(code, 0)
        self.mock_orch.run.assert_awaited_once_with(
            None, trigger_source="script",
        )
        file_manager = self.mock_filemanager.return_value
        file_manager.save_run_summary.assert_called_once()

    async def test_partial_run_exits_one(self) -> None:
        self.mock_orch.run = AsyncMock(
            return_value=RunSummary(
                execution_id=2,
                status=RunStatus.FAILED,
                notes="partial: 1/2 competitors completed; failed: reebelo",
            ),
        )

        code = await cli_sync("reebelo", trigger_source="cron")

        self.assertEqual(code, 1)
        self.mock_orch.run.assert_awaited_once_with(
            ["reebelo"], trigger_source="cron",
        )

    async def test_batch_errors_exit_one(self) -> None:
        self.mock_orch.run = AsyncMock(
            return_value=RunSummary(
                execution_id=3,
                status=RunStatus.COMPLETED,
                batch_errors=["batch 0 failed"],
            ),
        )

        self.assertEqual(await cli_sync(None), 1)

    async def test_configuration_error_exits_two(self) -> None:
        self.mock_orch.run = AsyncMock(
            side_effect=ConfigurationError("REEBELO_API_KEY is not set"),
        )

        code = await cli_sync(None)

        self.assertEqual(code, EXIT_CONFIG_ERROR)
        self.mock_database.return_value.close.assert_called_once()


class TestRunReconcile(unittest.TestCase):

    def test_no_executions(self) -> None:
        tmp_dir = tempfile.mkdtemp()
        db = Database(db_path=Path(tmp_dir) / "test.db")

        with patch("pricesync.cli.runner.Database", return_value=db), patch(
            "pricesync.cli.runner.FileManager"
        ) as mock_fm:
            code = run_reconcile(None)

        self.assertEqual(code, 0)
        mock_fm.assert_not_called()


if __name__ == "__main__":
    unittest.main()
