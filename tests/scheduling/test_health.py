"""Tests for timekeeper.scheduling.health - snapshots and health checks."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from timekeeper.scheduling.health import (
    SchedulerHealthReport,
    build_snapshot,
    check_scheduler_health,
    snapshot_record,
)
from timekeeper.scheduling.protocol import TimerMode, TimerStatus
from timekeeper.scheduling.store import WorkerRecord, WorkerRecordStore
from timekeeper.scheduling.timer import WorkerTimer

NOW = datetime(2030, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def timers():
    created: list[WorkerTimer] = []

    def make(name: str, *, start: bool = False, **kwargs) -> WorkerTimer:
        timer = WorkerTimer(60_000, name, **kwargs)
        if start:
            timer.start()
        created.append(timer)
        return timer

    yield make
    for timer in created:
        timer.dispose()


class TestSnapshot:
    def test_snapshot_record(self, timers):
        timer = timers("nightly", start=True, mode=TimerMode.CRON, description="report")
        record = WorkerRecord("nightly", timer, tally=4, cron_next_occurrence=NOW, cron_actual_tally=2)
        snap = snapshot_record(record)
        assert snap.name == "nightly"
        assert snap.status == TimerStatus.RUNNING
        assert snap.mode == TimerMode.CRON
        assert snap.description == "report"
        assert snap.tally == 4
        assert snap.interval_ms == 60_000.0
        assert snap.busy is False
        assert snap.cron_next_occurrence == NOW
        assert snap.cron_actual_tally == 2

    def test_to_dict(self, timers):
        snap = snapshot_record(WorkerRecord("a", timers("a"), cron_next_occurrence=NOW))
        data = snap.to_dict()
        assert data["status"] == "canceled_or_none"
        assert data["mode"] == "interval"
        assert data["cron_next_occurrence"] == NOW.isoformat()

    def test_build_snapshot_sorted_without_sub_tasks(self, timers):
        store = WorkerRecordStore()
        store.insert("b", WorkerRecord("b", timers("b")))
        store.insert("a", WorkerRecord("a", timers("a"), child=">>> a"))
        store.insert(">>> a", WorkerRecord(">>> a", timers(">>> a"), parent="a"))

        assert [s.name for s in build_snapshot(store)] == ["a", "b"]
        assert [s.name for s in build_snapshot(store, include_sub_tasks=True)] == [">>> a", "a", "b"]

    def test_busy_reflects_guard(self, timers):
        record = WorkerRecord("a", timers("a"))
        with record.guard.entered():
            assert snapshot_record(record).busy is True


class TestHealthChecks:
    def test_empty_store_is_healthy(self):
        report = check_scheduler_health(WorkerRecordStore(), now=NOW)
        assert isinstance(report, SchedulerHealthReport)
        assert report.healthy is True
        assert report.workers["total"] == 0
        assert all(report.checks.values())

    def test_counts(self, timers):
        store = WorkerRecordStore()
        store.insert("run", WorkerRecord("run", timers("run", start=True)))
        paused = timers("paused", start=True)
        paused.stop()
        store.insert("paused", WorkerRecord("paused", paused))
        store.insert("idle", WorkerRecord("idle", timers("idle")))

        report = check_scheduler_health(store, now=NOW)
        assert report.healthy is True
        assert report.workers == {
            "total": 3,
            "running": 1,
            "stopped": 1,
            "idle": 1,
            "busy": 0,
            "sub_tasks": 0,
        }

    def test_disposed_timer_is_error(self, timers):
        store = WorkerRecordStore()
        timer = timers("dead")
        timer.dispose()
        store.insert("dead", WorkerRecord("dead", timer))

        report = check_scheduler_health(store, now=NOW)
        assert report.healthy is False
        assert report.checks["no_disposed_timers"] is False
        assert "dead" in report.errors[0]

    def test_overdue_cron_is_warning(self, timers):
        store = WorkerRecordStore()
        store.insert(
            "late",
            WorkerRecord(
                "late",
                timers("late", start=True),
                cron_next_occurrence=NOW - timedelta(seconds=30),
            ),
        )

        report = check_scheduler_health(store, overdue_threshold_ms=5000, now=NOW)
        assert report.healthy is True
        assert report.checks["cron_on_time"] is False
        assert "late" in report.warnings[0]

    def test_pending_cron_within_threshold(self, timers):
        store = WorkerRecordStore()
        store.insert(
            "soon",
            WorkerRecord(
                "soon",
                timers("soon", start=True),
                cron_next_occurrence=NOW - timedelta(seconds=1),
            ),
        )
        assert check_scheduler_health(store, now=NOW).checks["cron_on_time"] is True

    def test_orphan_sub_task_is_warning(self, timers):
        store = WorkerRecordStore()
        store.insert(">>> gone", WorkerRecord(">>> gone", timers(">>> gone"), parent="gone"))

        report = check_scheduler_health(store, now=NOW)
        assert report.checks["no_orphan_sub_tasks"] is False
        assert report.workers["sub_tasks"] == 1
        assert ">>> gone" in report.warnings[0]

    def test_to_dict(self):
        data = check_scheduler_health(WorkerRecordStore(), now=NOW).to_dict()
        assert set(data) == {"healthy", "checks", "workers", "warnings", "errors"}


class TestSchedulerHealth:
    def test_facade_health(self, scheduler):
        scheduler.register_interval(1000, lambda t, n: None, "job")
        report = scheduler.health()
        assert report.healthy is True
        assert report.workers["running"] == 1

    def test_facade_snapshot(self, scheduler):
        scheduler.register_interval(1000, lambda t, n: None, "job", description="d")
        [snap] = scheduler.snapshot()
        assert snap.name == "job"
        assert snap.description == "d"
        assert snap.status == TimerStatus.RUNNING
