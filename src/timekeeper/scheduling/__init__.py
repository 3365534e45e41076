"""Scheduling package for timekeeper.

Manifesto:
    Background work inside a service should not need a separate scheduler
    process. This package keeps a registry of named timers in memory:
    fixed-interval, one-shot, and cron-driven, each of which can be paused,
    resumed or canceled on its own. A slow callback never runs twice at the
    same time; an overlapping tick is skipped, not queued.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMEKEEPER SCHEDULER                                                         │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from timekeeper.scheduling import TaskScheduler                    │   │
│  │                                                                      │   │
│  │   scheduler = TaskScheduler()                                        │   │
│  │   scheduler.register_interval(1000, heartbeat, "heartbeat")          │   │
│  │   scheduler.register_cron("0 0 2 * * *", nightly, "nightly")         │   │
│  │   scheduler.register_once_default(warm_cache)                        │   │
│  │                                                                      │   │
│  │   scheduler.stop("heartbeat")                                        │   │
│  │   scheduler.start("heartbeat")                                       │   │
│  │   scheduler.dispose_all()                                            │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│  Components:                                                                  │
│  - WorkerRecordStore   name -> WorkerRecord, compare-and-swap updates        │
│  - WorkerTimer         thread-backed timer with a small state machine        │
│  - ReentrancyGuard     non-blocking try-lock per worker                      │
│  - CronTranslator      cron expression -> next occurrence -> delay           │
│  - TaskScheduler       public facade                                         │
│                                                                               │
│  Dependencies:                                                                │
│  - croniter: Cron expression parsing                                         │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Expecting a skipped tick to run later
    ✅ Keep callbacks shorter than their interval, or accept skipped ticks
    ❌ Relying on schedules surviving a restart
    ✅ Re-register workers at startup
"""

from __future__ import annotations

from .cron import CronTranslator
from .health import SchedulerHealthReport, build_snapshot, check_scheduler_health
from .protocol import TaskCallback, TaskSnapshot, TimerMode, TimerStatus
from .reentrancy import ReentrancyGuard
from .service import TaskScheduler
from .store import WorkerRecord, WorkerRecordStore
from .timer import WorkerTimer

__all__ = [
    # Types
    "TimerStatus",
    "TimerMode",
    "TaskCallback",
    "TaskSnapshot",
    # Components
    "WorkerRecord",
    "WorkerRecordStore",
    "WorkerTimer",
    "ReentrancyGuard",
    "CronTranslator",
    # Facade
    "TaskScheduler",
    # Health
    "SchedulerHealthReport",
    "build_snapshot",
    "check_scheduler_health",
]
