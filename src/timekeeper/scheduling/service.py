"""Task scheduler - the public facade.

The TaskScheduler owns a worker record store and turns registration calls
into running timers. Every firing goes through one handler that bumps the
worker's tally, consults the re-entrancy guard and only then invokes user
code.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TASK SCHEDULER ARCHITECTURE                                                  │
│                                                                               │
│   register_*()                                                                │
│      │  WorkerTimer + WorkerRecord ──► WorkerRecordStore.insert()            │
│      ▼                                                                        │
│   ┌────────────────────────────────────────────────────────────────────┐     │
│   │  _on_elapsed(name)              (handler thread, one per tick)      │     │
│   │     1. store.mutate(name, tally + 1)                                │     │
│   │     2. guard.entered()  ── busy? ──► skip (tick lost, not queued)   │     │
│   │     3. callback(timer, tally)   (inside scope_runner if set)        │     │
│   └────────────────────────────────────────────────────────────────────┘     │
│                                                                               │
│   Cron / next-occurrence workers:                                             │
│   ┌──────────────────┐  poll every cron_poll_interval_ms                     │
│   │  poller "name"   │──► next_time_fn() ── None ──► cancel("name")          │
│   └──────────────────┘          │                                            │
│            ▲                    ▼ slot free? claim cron_next_occurrence       │
│            │          ┌─────────────────────────┐                            │
│            │          │ one-shot ">>> name"     │ delay = next - now         │
│            │          └───────────┬─────────────┘                            │
│            │                      ▼ fires                                     │
│            └──── clear slot, cron_actual_tally + 1, callback(timer, n)       │
└──────────────────────────────────────────────────────────────────────────────┘

Permissive by contract: registering without a callback (or, for the
interval forms, without a name) does nothing, and start/stop/cancel of an
unknown worker does nothing. Only a missing or blank name on
start/stop/cancel raises.

Callback exceptions are not caught here. They end the handler thread
(``threading.excepthook``) after the guard has been released.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import replace
from typing import Any
from uuid import uuid4

from timekeeper.errors import (
    InvalidIntervalError,
    InvalidWorkerNameError,
    WorkerExistsError,
)
from timekeeper.logging import LogContext, get_logger
from timekeeper.settings import TimekeeperSettings, get_settings

from .cron import CronTranslator
from .health import SchedulerHealthReport, build_snapshot, check_scheduler_health
from .protocol import NextTimeFunction, ScopeRunner, TaskCallback, TaskSnapshot, TimerMode
from .store import WorkerRecord, WorkerRecordStore
from .timer import WorkerTimer

log = get_logger(__name__)


class TaskScheduler:
    """In-process registry of named, independently controllable timers.

    Example:
        >>> scheduler = TaskScheduler()
        >>>
        >>> def report(timer, tally):
        ...     print(f"{timer.name} fired {tally} time(s)")
        ...
        >>> scheduler.register_interval(5000, report, "report")
        >>> scheduler.register_cron("0 */5 * * * *", report, "every-five-minutes")
        >>> scheduler.stop("report")
        >>> [t.name for t in scheduler.list_tasks()]
        ['report', 'every-five-minutes']
        >>> scheduler.dispose_all()
    """

    def __init__(
        self,
        store: WorkerRecordStore | None = None,
        settings: TimekeeperSettings | None = None,
        scope_runner: ScopeRunner | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            store: Record store (a private one is created if omitted)
            settings: Settings (cached environment settings if omitted)
            scope_runner: Wraps every callback invocation, e.g. to run it
                inside a unit of work (see :mod:`timekeeper.scope`)
        """
        self.store = store if store is not None else WorkerRecordStore()
        self.settings = settings or get_settings()
        self.scope_runner = scope_runner

    def __enter__(self) -> TaskScheduler:
        return self

    def __exit__(self, *args: Any) -> None:
        self.dispose_all()

    # === Registration ===

    def register_interval(
        self,
        interval_ms: float,
        callback: TaskCallback | None = None,
        worker_name: str | None = None,
        description: str | None = None,
    ) -> WorkerTimer | None:
        """Run ``callback`` every ``interval_ms`` milliseconds.

        Returns:
            The started timer, or None when callback or name is missing
        """
        return self._register(interval_ms, True, callback, worker_name, description)

    def register_once(
        self,
        interval_ms: float,
        callback: TaskCallback | None = None,
        worker_name: str | None = None,
        description: str | None = None,
    ) -> WorkerTimer | None:
        """Run ``callback`` once, ``interval_ms`` milliseconds from now.

        The worker stays registered (inert) until canceled.
        """
        return self._register(interval_ms, False, callback, worker_name, description)

    def register_once_default(
        self,
        callback: Callable[[], Any] | None = None,
        interval_ms: float | None = None,
    ) -> WorkerTimer | None:
        """Run a no-argument ``callback`` once in the background.

        The worker gets a generated unique name. The delay defaults to
        ``settings.default_once_delay_ms``.
        """
        if callback is None:
            return None
        delay = interval_ms if interval_ms is not None else self.settings.default_once_delay_ms
        return self._register(delay, False, lambda _timer, _tally: callback(), uuid4().hex, None)

    def register_cron(
        self,
        expression: str,
        callback: TaskCallback | None = None,
        worker_name: str | None = None,
        description: str | None = None,
    ) -> WorkerTimer | None:
        """Run ``callback`` at every occurrence of a seconds-resolution cron expression.

        Raises:
            InvalidCronExpressionError: If the expression cannot be parsed
        """
        if callback is None:
            return None
        translator = CronTranslator(expression, self.settings.get_tzinfo())
        return self.register_next_occurrence(
            translator.next_occurrence, callback, worker_name, description
        )

    def register_next_occurrence(
        self,
        next_time_fn: NextTimeFunction,
        callback: TaskCallback | None = None,
        worker_name: str | None = None,
        description: str | None = None,
    ) -> WorkerTimer | None:
        """Run ``callback`` at instants computed by ``next_time_fn``.

        ``next_time_fn`` is polled every ``settings.cron_poll_interval_ms``;
        returning None cancels the worker. A missing name is generated.

        Returns:
            The poller's timer, or None when callback is missing
        """
        if callback is None or next_time_fn is None:
            return None
        name = uuid4().hex if worker_name is None else worker_name

        def poll(_timer: WorkerTimer, _tally: int) -> None:
            self._poll_next_occurrence(name, next_time_fn, callback, description)

        return self._register(
            self.settings.cron_poll_interval_ms,
            True,
            poll,
            name,
            description,
            mode=TimerMode.CRON,
        )

    # === Control ===

    def start(self, worker_name: str) -> None:
        """Resume a worker and its pending sub-task. Unknown names are ignored.

        Raises:
            InvalidWorkerNameError: If worker_name is None or blank
        """
        self._require_name(worker_name)
        record = self.store.get(worker_name)
        if record is None:
            return

        if record.timer.start():
            log.info("worker_started", worker=worker_name)
        if record.child is not None:
            self.start(record.child)

    def stop(self, worker_name: str) -> None:
        """Pause a worker and its pending sub-task. Unknown names are ignored.

        Raises:
            InvalidWorkerNameError: If worker_name is None or blank
        """
        self._require_name(worker_name)
        record = self.store.get(worker_name)
        if record is None:
            return

        if record.timer.stop():
            log.info("worker_stopped", worker=worker_name)
        if record.child is not None:
            self.stop(record.child)

    def cancel(self, worker_name: str) -> None:
        """Remove a worker, dispose its timer and cancel its sub-task.

        A callback already running is not interrupted. Unknown names are
        ignored.

        Raises:
            InvalidWorkerNameError: If worker_name is None or blank
        """
        self._require_name(worker_name)
        record = self.store.remove(worker_name)
        if record is None:
            return

        record.timer.dispose()
        log.info("worker_canceled", worker=worker_name, tally=record.tally)
        if record.child is not None:
            self.cancel(record.child)

    def dispose_all(self) -> None:
        """Cancel every registered worker."""
        records = self.store.enumerate()
        if not records:
            return

        for name, _ in records:
            self.cancel(name)
        log.info("scheduler_disposed", workers=len(records))

    # === Inspection ===

    def list_tasks(self) -> list[WorkerTimer]:
        """Timers of all user-visible workers (derived sub-tasks excluded)."""
        return [record.timer for _, record in self.store.enumerate() if not record.is_sub_task]

    def get_task(self, worker_name: str) -> WorkerTimer | None:
        record = self.store.get(worker_name)
        return record.timer if record is not None else None

    def get_record(self, worker_name: str) -> WorkerRecord | None:
        return self.store.get(worker_name)

    def snapshot(self, include_sub_tasks: bool = False) -> list[TaskSnapshot]:
        """Point-in-time view of every worker, for admin UIs."""
        return build_snapshot(self.store, include_sub_tasks=include_sub_tasks)

    def health(self, overdue_threshold_ms: float = 5000.0) -> SchedulerHealthReport:
        return check_scheduler_health(self.store, overdue_threshold_ms=overdue_threshold_ms)

    def sub_task_name(self, worker_name: str) -> str:
        """Store key of the derived cron sub-task of ``worker_name``."""
        return f"{self.settings.sub_task_prefix}{worker_name}"

    # === Internal ===

    def _register(
        self,
        interval_ms: float,
        auto_reset: bool,
        callback: TaskCallback | None,
        worker_name: str | None,
        description: str | None,
        *,
        mode: TimerMode = TimerMode.INTERVAL,
        parent: str | None = None,
    ) -> WorkerTimer | None:
        if callback is None:
            return None
        if not isinstance(worker_name, str) or not worker_name.strip():
            return None

        if parent is None:
            if worker_name.startswith(self.settings.sub_task_prefix):
                raise InvalidWorkerNameError(
                    worker_name,
                    f"Worker names starting with {self.settings.sub_task_prefix!r} are reserved",
                )
            self._require_interval(interval_ms, worker_name)

        timer = WorkerTimer(
            interval_ms,
            worker_name,
            auto_reset=auto_reset,
            mode=mode,
            description=description,
        )
        if not self.store.insert(worker_name, WorkerRecord(worker_name, timer, parent=parent)):
            if parent is None:
                raise WorkerExistsError(worker_name)
            log.debug("sub_task_exists", worker=parent, sub_task=worker_name)
            return None

        timer.subscribe(lambda fired: self._on_elapsed(worker_name, callback, fired))
        timer.start()

        if parent is None:
            log.info(
                "worker_registered",
                worker=worker_name,
                mode=mode.value,
                interval_ms=timer.interval_ms,
                auto_reset=auto_reset,
            )
        return timer

    def _on_elapsed(self, worker_name: str, callback: TaskCallback, timer: WorkerTimer) -> None:
        record = self.store.mutate(worker_name, WorkerRecord.with_tick)
        if record is None:
            # Canceled between the tick and this handler
            return

        with record.guard.entered() as acquired:
            if not acquired:
                log.debug("tick_skipped", worker=worker_name, tally=record.tally)
                return
            self._invoke(worker_name, callback, timer, record.tally)

    def _invoke(self, worker_name: str, callback: TaskCallback, timer: WorkerTimer, tally: int) -> None:
        with LogContext(worker=worker_name, tally=tally):
            if self.scope_runner is None:
                callback(timer, tally)
            else:
                self.scope_runner(lambda: callback(timer, tally))

    def _poll_next_occurrence(
        self,
        worker_name: str,
        next_time_fn: NextTimeFunction,
        callback: TaskCallback,
        description: str | None,
    ) -> None:
        next_time = next_time_fn()
        if next_time is None:
            log.info("schedule_exhausted", worker=worker_name)
            self.cancel(worker_name)
            return

        sub_name = self.sub_task_name(worker_name)
        claimed = False

        def claim(current: WorkerRecord) -> WorkerRecord:
            nonlocal claimed
            claimed = False
            if current.cron_next_occurrence is not None:
                return current
            claimed = True
            return replace(current, cron_next_occurrence=next_time, child=sub_name)

        record = self.store.mutate(worker_name, claim)
        if record is None or not claimed:
            # Canceled, or a sub-task is already pending
            return
        if not record.timer.enabled:
            # Stopped while this poll was running
            self._release_claim(worker_name, record)
            return

        delay_ms = CronTranslator.delay_ms(next_time)
        log.debug(
            "cron_armed",
            worker=worker_name,
            next_occurrence=next_time.isoformat(),
            delay_ms=round(delay_ms, 1),
        )

        def fire(_timer: WorkerTimer, _tally: int) -> None:
            self._fire_sub_task(worker_name, sub_name, callback)

        sub_timer = self._register(
            delay_ms,
            False,
            fire,
            sub_name,
            description,
            mode=TimerMode.CRON,
            parent=worker_name,
        )
        if sub_timer is None:
            if sub_name not in self.store:
                self._release_claim(worker_name, record)
            return
        if not record.timer.enabled:
            # stop() ran between the claim and the insert
            sub_timer.stop()

    def _release_claim(self, worker_name: str, record: WorkerRecord) -> None:
        pending = record.cron_next_occurrence
        self.store.mutate(
            worker_name,
            lambda current: (
                _release_cron_slot(current) if current.cron_next_occurrence is pending else current
            ),
        )

    def _fire_sub_task(self, worker_name: str, sub_name: str, callback: TaskCallback) -> None:
        sub = self.store.remove(sub_name)
        if sub is not None:
            sub.timer.dispose()

        record = self.store.mutate(
            worker_name,
            lambda current: replace(
                _release_cron_slot(current),
                cron_actual_tally=current.cron_actual_tally + 1,
            ),
        )
        if record is None:
            # Owner canceled while the sub-task was pending
            return

        self._invoke(worker_name, callback, record.timer, record.cron_actual_tally)

    @staticmethod
    def _require_name(worker_name: str | None) -> None:
        if not isinstance(worker_name, str) or not worker_name.strip():
            raise InvalidWorkerNameError(worker_name)

    @staticmethod
    def _require_interval(interval_ms: Any, worker_name: str) -> None:
        if (
            isinstance(interval_ms, bool)
            or not isinstance(interval_ms, (int, float))
            or not math.isfinite(interval_ms)
            or interval_ms <= 0
        ):
            raise InvalidIntervalError(interval_ms, worker=worker_name)


def _release_cron_slot(record: WorkerRecord) -> WorkerRecord:
    return replace(record, cron_next_occurrence=None, child=None)

