# main.py

"""Entry point for the pricesync command line."""

import argparse
import asyncio
import logging
import sys

from pricesync.config.logging_config import setup_logging
from pricesync.config.settings import Settings

logger = logging.getLogger("pricesync.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(c["id"] for c in Settings.COMPETITORS)

    parser = argparse.ArgumentParser(
        prog="pricesync",
        description="Competitor price synchronization engine.",
        epilog=f"Available competitors: {valid_ids}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Also log INFO messages to stderr.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser(
        "sync", help="Fetch, match and record competitor prices.",
    )
    sync.add_argument(
        "-c",
        "--competitor",
        default=None,
        help="Run a single competitor ID (default: all).",
    )
    sync.add_argument(
        "--trigger",
        default="script",
        dest="trigger_source",
        help="Label stored with the execution (default: script).",
    )

    stats = commands.add_parser(
        "stats", help="Show recent executions.",
    )
    stats.add_argument(
        "--hours",
        type=int,
        default=Settings.HEALTH_WINDOW_HOURS,
        help="Window size in hours (default: %(default)s).",
    )

    commands.add_parser(
        "health", help="Probe competitors and judge recent executions.",
    )

    reconcile = commands.add_parser(
        "reconcile", help="Export unmatched offers to CSV.",
    )
    reconcile.add_argument(
        "-e",
        "--execution",
        type=int,
        default=None,
        dest="execution_id",
        help="Execution ID (default: the latest).",
    )
    return parser


def _run_sync(args: argparse.Namespace) -> None:
    """Run a sync and exit with its status."""
    from pricesync.cli.runner import cli_sync

    exit_code = asyncio.run(
        cli_sync(
            competitor_id=args.competitor,
            trigger_source=args.trigger_source,
        )
    )
    sys.exit(exit_code)


def _run_stats(args: argparse.Namespace) -> None:
    from pricesync.cli.runner import run_stats

    sys.exit(run_stats(args.hours))


def _run_health_check() -> None:
    """Run connectivity and execution health checks."""
    from pricesync.cli.runner import run_health_check

    exit_code = asyncio.run(run_health_check())
    sys.exit(exit_code)


def _run_reconcile(args: argparse.Namespace) -> None:
    from pricesync.cli.runner import run_reconcile

    sys.exit(run_reconcile(args.execution_id))


def main() -> None:
    """Route to the requested subcommand."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(verbose=args.verbose)
    logger.info("pricesync starting, log file: %s", log_file)

    try:
        if args.command == "sync":
            _run_sync(args)
        elif args.command == "stats":
            _run_stats(args)
        elif args.command == "health":
            _run_health_check()
        else:
            _run_reconcile(args)
    except Exception:
        logger.critical("Fatal error during %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("pricesync %s shutting down", args.command)


if __name__ == "__main__":
    main()
