# pricesync/services/health_checker.py

"""Competitor connectivity and execution health checks."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pricesync.config.settings import Settings
from pricesync.services.registry import load_object
from pricesync.storage.execution_store import ExecutionStore

logger = logging.getLogger("pricesync.health")

_HEALTH_TIMEOUT = 10  # seconds per source


@dataclass
class HealthResult:
    """Result of a single source health check."""

    source_id: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


@dataclass
class ExecutionHealth:
    """Verdict on recent executions."""

    healthy: bool
    level: str  # "ok", "warning", "critical"
    message: str
    total: int = 0
    failed: int = 0
    failure_rate: float | None = None
    stale_failed: list[int] = field(
        default_factory=lambda: list[int]()
    )


def probe_source(source: dict[str, str]) -> HealthResult:
    """Probe a single competitor source for connectivity."""
    source_id = source["id"]

    try:
        adapter = load_object(source["adapter"])()
    except Exception as exc:
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=0.0,
            message=f"Failed to load adapter: {exc}",
        )

    start = time.monotonic()
    try:
        resp = adapter.session.get(
            adapter.probe_url(),
            headers=adapter._headers(),
            timeout=_HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code != 200:
            return HealthResult(
                source_id=source_id,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )

        if elapsed_ms > 5000:
            return HealthResult(
                source_id=source_id,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
            )

        return HealthResult(
            source_id=source_id,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )


class HealthChecker:
    """Runs concurrent source probes and judges recent executions."""

    def __init__(self, store: ExecutionStore | None = None) -> None:
        self.sources = Settings.COMPETITORS
        self.store = store

    async def check_all(self) -> list[HealthResult]:
        """Probe every registered competitor concurrently."""
        tasks = [
            asyncio.to_thread(probe_source, src)
            for src in self.sources
        ]
        results: list[HealthResult] = list(
            await asyncio.gather(*tasks)
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results

    def check_executions(
        self, now: datetime | None = None,
    ) -> ExecutionHealth:
        """Close stale runs, then judge the failure rate of the window.

        No executions in the window is a warning; a failure rate above
        ``HEALTH_FAILURE_RATE`` among finished runs is critical.
        """
        if self.store is None:
            raise RuntimeError("HealthChecker needs an ExecutionStore")
        now = now or datetime.now()
        hours = Settings.HEALTH_WINDOW_HOURS

        stale = self.store.fail_stale(
            timedelta(seconds=Settings.STALE_RUN_TIMEOUT), now,
        )
        stats = self.store.recent_stats(hours, now=now)

        if stats["total"] == 0:
            health = ExecutionHealth(
                healthy=False,
                level="warning",
                message=f"No executions in the last {hours}h",
                stale_failed=stale,
            )
        else:
            finished = stats["completed"] + stats["failed"]
            rate = stats["failed"] / finished if finished else 0.0
            if rate > Settings.HEALTH_FAILURE_RATE:
                health = ExecutionHealth(
                    healthy=False,
                    level="critical",
                    message=(
                        f"High failure rate: {rate:.0%} of {finished} "
                        f"finished runs in the last {hours}h"
                    ),
                )
            else:
                health = ExecutionHealth(
                    healthy=True,
                    level="ok",
                    message=(
                        f"{stats['completed']}/{finished} runs completed "
                        f"in the last {hours}h"
                    ),
                )
            health.total = stats["total"]
            health.failed = stats["failed"]
            health.failure_rate = rate
            health.stale_failed = stale

        log = logger.info if health.healthy else logger.warning
        log("Execution health: %s (%s)", health.level, health.message)
        return health
