# pricesync/models/execution.py

"""Execution (run) lifecycle models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class RunStatus(str, Enum):
    """Lifecycle state shared by runs and per-competitor sub-runs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


# Allowed moves of the state machine
TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING, RunStatus.FAILED}),
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
}


@dataclass
class CompetitorRun:
    """Status of one competitor inside one execution."""

    competitor: str
    status: RunStatus = RunStatus.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: dict[str, Any] | None = None
    sub_errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    offer_count: int = 0
    matched_count: int = 0


@dataclass
class Execution:
    """One orchestrator run across one or more competitors."""

    id: int
    status: RunStatus
    started_at: datetime
    trigger_source: str = "script"
    finished_at: datetime | None = None
    notes: str = ""
    total_runtime_ms: int | None = None
    competitors: dict[str, CompetitorRun] = field(
        default_factory=lambda: dict[str, CompetitorRun]()
    )
