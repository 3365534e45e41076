"""Thread-backed timer entity.

┌──────────────────────────────────────────────────────────────────────────────┐
│  WORKER TIMER                                                                 │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   ┌───────────────────────────────────────────────────────────┐              │
│   │              Daemon Thread (loop)                          │              │
│   │                                                            │              │
│   │   while not stop_event.wait(interval):                     │              │
│   │       fire_count += 1                                      │              │
│   │       for handler in handlers:                             │              │
│   │           Thread(target=handler).start()  ◄──── Elapsed    │              │
│   │       if not auto_reset: become inert, exit loop           │              │
│   └───────────────────────────────────────────────────────────┘              │
│                                                                               │
│   stop()     stop_event.set()       (timer stays usable)                      │
│   dispose()  stop_event.set()       (terminal, CANCELED_OR_NONE)              │
│                                                                               │
│  Handlers run on their own daemon threads, so a slow handler never delays    │
│  the next tick; overlapping ticks of the same timer are visible to the       │
│  caller's re-entrancy guard.                                                 │
└──────────────────────────────────────────────────────────────────────────────┘

State machine:
    CANCELED_OR_NONE (idle) ──start()──► RUNNING ──stop()──► STOPPED
    STOPPED ──start()──► RUNNING
    any ──dispose()──► CANCELED_OR_NONE (terminal)

Neither stop() nor dispose() joins the loop thread or interrupts a running
handler; cancellation takes effect at the next tick boundary.
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import UTC, datetime

from .protocol import ElapsedHandler, TimerMode, TimerStatus

logger = logging.getLogger(__name__)


class WorkerTimer:
    """A single schedulable unit.

    Example:
        >>> timer = WorkerTimer(500, "heartbeat")
        >>> timer.subscribe(lambda t: print("tick", t.fire_count))
        >>> timer.start()
        >>> # ... later ...
        >>> timer.dispose()
    """

    def __init__(
        self,
        interval_ms: float,
        name: str,
        *,
        auto_reset: bool = True,
        mode: TimerMode = TimerMode.INTERVAL,
        description: str | None = None,
    ) -> None:
        """Initialize timer.

        Args:
            interval_ms: Milliseconds between firings. Zero fires as soon as
                the timer starts.
            name: Worker name this timer belongs to.
            auto_reset: Fire repeatedly (True) or exactly once (False).
            mode: Informational classification.
            description: Optional free text.
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)):
            raise TypeError(f"interval_ms must be a number, got {type(interval_ms).__name__}")
        if interval_ms < 0 or not math.isfinite(interval_ms):
            raise ValueError(f"interval_ms must be >= 0 and finite, got {interval_ms}")

        self.name = name
        self.mode = mode
        self.description = description
        self._interval_ms = float(interval_ms)
        self._auto_reset = auto_reset

        self._lock = threading.Lock()
        self._handlers: list[ElapsedHandler] = []
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._status = TimerStatus.CANCELED_OR_NONE
        self._enabled = False
        self._exhausted = False
        self._disposed = False
        self._fire_count = 0
        self._last_fired: datetime | None = None

    def __repr__(self) -> str:
        return (
            f"WorkerTimer(name={self.name!r}, interval_ms={self._interval_ms}, "
            f"status={self._status.value}, auto_reset={self._auto_reset})"
        )

    # === Properties ===

    @property
    def interval_ms(self) -> float:
        return self._interval_ms

    @property
    def auto_reset(self) -> bool:
        return self._auto_reset

    @property
    def status(self) -> TimerStatus:
        return self._status

    @property
    def enabled(self) -> bool:
        """True while the timer is armed and will fire."""
        return self._enabled

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def fire_count(self) -> int:
        """Number of times the timer has fired."""
        return self._fire_count

    @property
    def last_fired(self) -> datetime | None:
        return self._last_fired

    # === Subscription ===

    def subscribe(self, handler: ElapsedHandler) -> None:
        """Register a handler called (on its own thread) each time the timer fires."""
        with self._lock:
            self._handlers.append(handler)

    # === Lifecycle ===

    def start(self) -> bool:
        """Arm the timer.

        No-op when already enabled, disposed, or when a one-shot timer has
        already fired.

        Returns:
            True if the timer was armed by this call.
        """
        with self._lock:
            if self._enabled or self._disposed or self._exhausted:
                return False

            stop_event = threading.Event()
            self._stop_event = stop_event
            self._enabled = True
            self._status = TimerStatus.RUNNING
            self._thread = threading.Thread(
                target=self._loop,
                args=(stop_event,),
                daemon=True,
                name=f"timekeeper-{self.name}",
            )
            self._thread.start()

        logger.debug(f"Timer {self.name} started (interval={self._interval_ms}ms)")
        return True

    def stop(self) -> bool:
        """Pause the timer. No-op unless currently enabled.

        Returns:
            True if the timer was paused by this call.
        """
        with self._lock:
            if not self._enabled:
                return False
            self._halt()
            self._status = TimerStatus.STOPPED

        logger.debug(f"Timer {self.name} stopped")
        return True

    def dispose(self) -> None:
        """Stop firing for good and release the loop thread. Terminal."""
        with self._lock:
            if self._disposed:
                return
            self._halt()
            self._disposed = True
            self._status = TimerStatus.CANCELED_OR_NONE
            self._handlers.clear()

        logger.debug(f"Timer {self.name} disposed")

    def _halt(self) -> None:
        # Caller holds self._lock
        self._enabled = False
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._thread = None

    # === Loop ===

    def _loop(self, stop_event: threading.Event) -> None:
        interval_seconds = self._interval_ms / 1000.0
        while not stop_event.wait(interval_seconds):
            with self._lock:
                if stop_event.is_set():
                    return
                self._fire_count += 1
                self._last_fired = datetime.now(UTC)
                handlers = list(self._handlers)
                if not self._auto_reset:
                    self._exhausted = True
                    self._halt()
                    self._status = TimerStatus.STOPPED

            for handler in handlers:
                threading.Thread(
                    target=handler,
                    args=(self,),
                    daemon=True,
                    name=f"timekeeper-{self.name}-{self._fire_count}",
                ).start()

            if not self._auto_reset:
                return
