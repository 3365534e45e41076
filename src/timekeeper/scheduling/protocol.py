"""Shared scheduling types.

Status and mode enums for timers, the callback signatures the scheduler
accepts, and the :class:`TaskSnapshot` value used by admin/observability
views.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .timer import WorkerTimer


class TimerStatus(str, Enum):
    """Lifecycle state of a timer."""

    RUNNING = "running"
    STOPPED = "stopped"
    CANCELED_OR_NONE = "canceled_or_none"  # idle before first start, or disposed


class TimerMode(str, Enum):
    """Informational classification of a timer."""

    INTERVAL = "interval"
    CRON = "cron"


# (timer, tally) -> None
TaskCallback = Callable[["WorkerTimer", int], None]

# Returns the next fire instant, or None when the schedule is exhausted.
NextTimeFunction = Callable[[], datetime | None]

# Runs an action inside an execution scope (see timekeeper.scope).
ScopeRunner = Callable[[Callable[[], Any]], Any]

# Handler subscribed to a timer's elapsed event.
ElapsedHandler = Callable[["WorkerTimer"], None]


@dataclass(frozen=True)
class TaskSnapshot:
    """Point-in-time view of one worker."""

    name: str
    status: TimerStatus
    mode: TimerMode
    description: str | None
    tally: int
    interval_ms: float
    auto_reset: bool
    busy: bool = False
    cron_next_occurrence: datetime | None = None
    cron_actual_tally: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "status": self.status.value,
            "mode": self.mode.value,
            "description": self.description,
            "tally": self.tally,
            "interval_ms": self.interval_ms,
            "auto_reset": self.auto_reset,
            "busy": self.busy,
            "cron_next_occurrence": (
                self.cron_next_occurrence.isoformat() if self.cron_next_occurrence else None
            ),
            "cron_actual_tally": self.cron_actual_tally,
        }
