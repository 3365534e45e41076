"""Per-worker re-entrancy guard.

A non-blocking try-lock: a tick that finds the guard held skips the
callback instead of waiting for it. Skipped ticks are lost, not queued.

Example:
    >>> guard = ReentrancyGuard()
    >>> with guard.entered() as acquired:
    ...     if acquired:
    ...         run_callback()
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReentrancyGuard:
    """Bounds one worker's callback to a single in-flight invocation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_enter(self) -> bool:
        """Atomically flip the flag 0 -> 1. Returns False if already 1."""
        return self._lock.acquire(blocking=False)

    def exit(self) -> None:
        """Flip the flag back to 0."""
        self._lock.release()

    @property
    def held(self) -> bool:
        return self._lock.locked()

    @property
    def flag(self) -> int:
        """0/1 view of the guard; 1 means a callback is in flight."""
        return 1 if self._lock.locked() else 0

    @contextmanager
    def entered(self) -> Iterator[bool]:
        """Try to enter; always release on exit if entered, even on error."""
        acquired = self.try_enter()
        try:
            yield acquired
        finally:
            if acquired:
                self.exit()
