"""Worker snapshots and scheduler health checks.

Admin and observability views read the store through this module instead
of touching records directly.

Health Checks:
    1. Registry: no disposed timer is still registered
    2. Cron: no pending cron sub-task is overdue
    3. Sub-tasks: every sub-task still has its owning worker
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .protocol import TaskSnapshot, TimerStatus

if TYPE_CHECKING:
    from .store import WorkerRecord, WorkerRecordStore

logger = logging.getLogger(__name__)


@dataclass
class SchedulerHealthReport:
    """Complete scheduler health report."""

    healthy: bool
    checks: dict[str, bool] = field(default_factory=dict)
    workers: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "healthy": self.healthy,
            "checks": self.checks,
            "workers": self.workers,
            "warnings": self.warnings,
            "errors": self.errors,
        }


def snapshot_record(record: WorkerRecord) -> TaskSnapshot:
    """Freeze one record into a :class:`TaskSnapshot`."""
    timer = record.timer
    return TaskSnapshot(
        name=record.name,
        status=timer.status,
        mode=timer.mode,
        description=timer.description,
        tally=record.tally,
        interval_ms=timer.interval_ms,
        auto_reset=timer.auto_reset,
        busy=record.guard.held,
        cron_next_occurrence=record.cron_next_occurrence,
        cron_actual_tally=record.cron_actual_tally,
    )


def build_snapshot(store: WorkerRecordStore, include_sub_tasks: bool = False) -> list[TaskSnapshot]:
    """Snapshot every worker, sorted by name.

    Args:
        store: Store to read
        include_sub_tasks: Also include derived cron sub-tasks
    """
    return [
        snapshot_record(record)
        for _, record in sorted(store.enumerate(), key=lambda item: item[0])
        if include_sub_tasks or not record.is_sub_task
    ]


def check_scheduler_health(
    store: WorkerRecordStore,
    overdue_threshold_ms: float = 5000.0,
    now: datetime | None = None,
) -> SchedulerHealthReport:
    """Inspect the store for stuck or inconsistent workers.

    Args:
        store: Store to inspect
        overdue_threshold_ms: How late a pending cron sub-task may be
            before it is reported
        now: Reference time (default: now, process-local)

    Returns:
        SchedulerHealthReport with all checks
    """
    report = SchedulerHealthReport(healthy=True)
    records = store.enumerate()
    names = {name for name, _ in records}
    current = now or datetime.now().astimezone()

    counts = {"total": 0, "running": 0, "stopped": 0, "idle": 0, "busy": 0, "sub_tasks": 0}
    disposed: list[str] = []
    overdue: list[str] = []
    orphans: list[str] = []

    for name, record in records:
        counts["total"] += 1
        if record.is_sub_task:
            counts["sub_tasks"] += 1
            if record.parent not in names:
                orphans.append(name)
        if record.guard.held:
            counts["busy"] += 1

        status = record.timer.status
        if record.timer.disposed:
            disposed.append(name)
        elif status == TimerStatus.RUNNING:
            counts["running"] += 1
        elif status == TimerStatus.STOPPED:
            counts["stopped"] += 1
        else:
            counts["idle"] += 1

        pending = record.cron_next_occurrence
        if pending is not None and record.timer.status == TimerStatus.RUNNING:
            if (pending.tzinfo is None) != (current.tzinfo is None):
                pending = pending.astimezone()
                reference = current.astimezone()
            else:
                reference = current
            late_ms = (reference - pending).total_seconds() * 1000.0
            if late_ms > overdue_threshold_ms:
                overdue.append(f"{name} ({late_ms:.0f}ms)")

    report.workers = counts

    report.checks["no_disposed_timers"] = not disposed
    if disposed:
        report.healthy = False
        report.errors.append(f"Disposed timers still registered: {', '.join(sorted(disposed))}")

    report.checks["cron_on_time"] = not overdue
    if overdue:
        report.warnings.append(f"Overdue cron sub-tasks: {', '.join(sorted(overdue))}")

    report.checks["no_orphan_sub_tasks"] = not orphans
    if orphans:
        report.warnings.append(f"Sub-tasks without owner: {', '.join(sorted(orphans))}")

    if report.errors or report.warnings:
        logger.warning(
            f"Scheduler health: {len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )

    return report
