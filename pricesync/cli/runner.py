# pricesync/cli/runner.py

"""Headless CLI commands: sync, stats, health and reconcile."""

import logging

from rich.console import Console
from rich.table import Table

from pricesync.errors import ConfigurationError
from pricesync.services.sync_orchestrator import RunSummary, SyncOrchestrator
from pricesync.storage.database import Database
from pricesync.storage.execution_store import ExecutionStore
from pricesync.storage.file_manager import FileManager
from pricesync.storage.history_store import HistoryStore

logger = logging.getLogger("pricesync.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)

EXIT_CONFIG_ERROR = 2


def _status_markup(status: str) -> str:
    if status == "completed":
        return "[green]completed[/green]"
    if status == "failed":
        return "[red]failed[/red]"
    return f"[yellow]{status}[/yellow]"


def _print_summary(summary: RunSummary) -> None:
    """Render a Rich table of per-competitor outcomes to stdout."""
    table = Table(
        title=f"Execution {summary.execution_id}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Competitor", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Keys", justify="right")
    table.add_column("Offers", justify="right")
    table.add_column("Matched", justify="right", style="green")
    table.add_column("Dropped", justify="right", style="dim")
    table.add_column("Errors", justify="right")

    for name, outcome in summary.outcomes.items():
        table.add_row(
            name,
            _status_markup("failed" if outcome.failed else "completed"),
            str(outcome.keys),
            str(len(outcome.results)),
            str(outcome.matched_count),
            str(outcome.dropped),
            str(len(outcome.errors)) if not outcome.failed
            else (outcome.error or "")[:60],
        )

    Console().print(table)


async def cli_sync(
    competitor_id: str | None,
    trigger_source: str = "script",
) -> int:
    """Run a sync and return 0 (completed), 1 (partial) or 2 (config)."""
    try:
        db = Database()
    except OSError as exc:
        _err.print(f"[red]Cannot open database: {exc}[/red]")
        return EXIT_CONFIG_ERROR

    try:
        file_manager = FileManager()
        orchestrator = SyncOrchestrator(db=db, file_manager=file_manager)
        ids = [competitor_id] if competitor_id else None
        _err.print(
            f"[bold]Syncing:[/bold] {competitor_id or 'all competitors'}"
        )
        summary = await orchestrator.run(ids, trigger_source=trigger_source)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        _err.print(f"[red]Configuration error: {exc}[/red]")
        db.close()
        return EXIT_CONFIG_ERROR

    try:
        path = file_manager.save_run_summary(
            summary.execution_id, summary.to_dict(),
        )
        _err.print(f"[dim]Saved summary → {path}[/dim]")
    except OSError as exc:
        logger.error("Save failed: %s", exc, exc_info=True)
        _err.print(f"[red]Save failed: {exc}[/red]")
    finally:
        db.close()

    _print_summary(summary)
    for error in summary.batch_errors:
        _err.print(f"[red]Batch error: {error}[/red]")
    if summary.report_path is not None:
        _err.print(
            f"[yellow]{summary.unmatched_count} unmatched offers → "
            f"{summary.report_path}[/yellow]"
        )
    if summary.exit_code == 0:
        _err.print(
            f"[green]✓ {summary.records_written} price records written[/green]"
        )
    else:
        _err.print(f"[yellow]Run {summary.status.value}: {summary.notes}[/yellow]")
    return summary.exit_code


def run_stats(hours: int) -> int:
    """Print recent executions and per-competitor counters."""
    db = Database()
    store = ExecutionStore(db)
    history = HistoryStore(db)
    executions = store.recent_executions(hours)
    stats = store.recent_stats(hours)
    competitor_stats = store.competitor_stats()

    table = Table(
        title=f"Executions in the last {hours}h",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Started")
    table.add_column("Status", justify="center")
    table.add_column("Competitors")
    table.add_column("Rows", justify="right")
    table.add_column("Runtime", justify="right")
    table.add_column("Notes", style="dim", max_width=50)

    for execution in executions:
        competitors = ", ".join(
            f"{name}={run.status.value}"
            for name, run in execution.competitors.items()
        )
        runtime = (
            f"{execution.total_runtime_ms / 1000:.1f}s"
            if execution.total_runtime_ms is not None
            else "—"
        )
        table.add_row(
            str(execution.id),
            execution.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            _status_markup(execution.status.value),
            competitors,
            str(history.count_history(execution.id)),
            runtime,
            execution.notes,
        )

    console = Console()
    console.print(table)

    rate = stats["success_rate"]
    console.print(
        f"{stats['total']} runs: {stats['completed']} completed, "
        f"{stats['failed']} failed, {stats['in_progress']} in progress"
        + (f" ({rate:.0%} success)" if rate is not None else "")
    )
    for row in competitor_stats:
        console.print(
            f"[dim]{row['competitor']}: {row['failed_executions']}/"
            f"{row['total_executions']} failed overall[/dim]"
        )
    db.close()
    return 0


async def run_health_check() -> int:
    """Run connectivity and execution health checks."""
    from pricesync.services.health_checker import HealthChecker

    _err.print("[bold]Running health check...[/bold]")
    db = Database()
    checker = HealthChecker(ExecutionStore(db))
    results = await checker.check_all()
    execution_health = checker.check_executions()
    db.close()

    table = Table(
        title="Source Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(
            r.source_id, status, latency, r.message,
        )

    console = Console()
    console.print(table)

    colour = {"ok": "green", "warning": "yellow"}.get(
        execution_health.level, "red",
    )
    console.print(
        f"[{colour}]Executions: {execution_health.message}[/{colour}]"
    )
    if execution_health.stale_failed:
        console.print(
            f"[yellow]Marked stale runs failed: "
            f"{', '.join(map(str, execution_health.stale_failed))}[/yellow]"
        )
    return 1 if any_down or not execution_health.healthy else 0


def run_reconcile(execution_id: int | None) -> int:
    """Export unmatched offers of an execution (default: the latest)."""
    db = Database()
    history = HistoryStore(db)
    target = execution_id or history.latest_execution_id()
    if target is None:
        _err.print("[yellow]No recorded offers yet.[/yellow]")
        db.close()
        return 0

    rows = history.unmatched_offers(target)
    db.close()
    if not rows:
        _err.print(f"[green]✓ Execution {target}: every offer matched[/green]")
        return 0

    path = FileManager().export_unmatched_csv(target, rows)
    _err.print(
        f"[yellow]{len(rows)} unmatched offers of execution {target} → "
        f"{path}[/yellow]"
    )
    return 0
