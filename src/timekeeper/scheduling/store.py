"""Worker record store.

Concurrent mapping from worker name to its scheduling state. Records are
immutable values; every change swaps in a new record.

Two update paths are offered:

- ``update(name, new_record)`` reads the current record and swaps only if it
  is unchanged. A concurrent writer between the read and the swap makes the
  update lose (it returns False and the write is dropped).
- ``mutate(name, fn)`` retries ``fn`` against the latest record until its
  swap succeeds, so no write is lost. The scheduler uses this path for all
  of its own bookkeeping.

The internal lock covers only the compare-and-swap itself; no user code ever
runs while it is held.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from .reentrancy import ReentrancyGuard
from .timer import WorkerTimer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerRecord:
    """Scheduling state of one registered worker.

    Attributes:
        name: Unique key in the store
        timer: Timer owned by this worker
        guard: Re-entrancy guard shared by every version of the record
        tally: Ticks observed for this worker
        cron_next_occurrence: Set while a cron sub-task is pending
        cron_actual_tally: Cron firings actually executed
        parent: Name of the owning worker (sub-tasks only)
        child: Name of the current sub-task (cron pollers only)
    """

    name: str
    timer: WorkerTimer
    guard: ReentrancyGuard = field(default_factory=ReentrancyGuard)
    tally: int = 0
    cron_next_occurrence: datetime | None = None
    cron_actual_tally: int = 0
    parent: str | None = None
    child: str | None = None

    @property
    def reentrancy_flag(self) -> int:
        return self.guard.flag

    @property
    def is_sub_task(self) -> bool:
        return self.parent is not None

    def with_tick(self) -> WorkerRecord:
        """Return a copy with tally incremented."""
        return replace(self, tally=self.tally + 1)


class WorkerRecordStore:
    """Thread-safe registry of worker records.

    Example:
        >>> store = WorkerRecordStore()
        >>> store.insert("nightly", WorkerRecord("nightly", timer))
        True
        >>> store.mutate("nightly", WorkerRecord.with_tick).tally
        1
    """

    def __init__(self) -> None:
        self._records: dict[str, WorkerRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def insert(self, name: str, record: WorkerRecord) -> bool:
        """Insert if absent.

        Returns:
            True if inserted, False if the name was already taken
        """
        with self._lock:
            if name in self._records:
                return False
            self._records[name] = record
            return True

    def get(self, name: str) -> WorkerRecord | None:
        return self._records.get(name)

    def compare_and_swap(self, name: str, expected: WorkerRecord, new: WorkerRecord) -> bool:
        """Replace ``expected`` with ``new`` only if ``expected`` is still current."""
        with self._lock:
            if self._records.get(name) is not expected:
                return False
            self._records[name] = new
            return True

    def update(self, name: str, new_record: WorkerRecord) -> bool:
        """Read-then-swap update. Loses silently to a concurrent writer."""
        current = self.get(name)
        if current is None:
            return False
        swapped = self.compare_and_swap(name, current, new_record)
        if not swapped:
            logger.debug(f"Lost update race for worker {name}")
        return swapped

    def mutate(
        self,
        name: str,
        fn: Callable[[WorkerRecord], WorkerRecord],
    ) -> WorkerRecord | None:
        """Apply ``fn`` to the current record until the swap succeeds.

        ``fn`` may run more than once and must not have side effects.

        Returns:
            The record that was stored, or None if the worker is gone
        """
        while True:
            current = self.get(name)
            if current is None:
                return None
            new = fn(current)
            if new is current or self.compare_and_swap(name, current, new):
                return new

    def remove(self, name: str) -> WorkerRecord | None:
        with self._lock:
            return self._records.pop(name, None)

    def enumerate(self) -> list[tuple[str, WorkerRecord]]:
        """Snapshot of all (name, record) pairs."""
        with self._lock:
            return list(self._records.items())
