"""
Timekeeper - in-process background task scheduling.

Named interval, one-shot and cron timers with per-worker re-entrancy
protection, no external scheduler process required.
"""

__version__ = "0.1.0"

from timekeeper.errors import (
    InvalidCronExpressionError,
    InvalidIntervalError,
    InvalidWorkerNameError,
    ScheduleError,
    ScopeError,
    TimekeeperError,
    WorkerExistsError,
)
from timekeeper.scheduling import (
    CronTranslator,
    TaskScheduler,
    TaskSnapshot,
    TimerMode,
    TimerStatus,
    WorkerTimer,
)
from timekeeper.settings import TimekeeperSettings, get_settings

__all__ = [
    "__version__",
    "TaskScheduler",
    "WorkerTimer",
    "TaskSnapshot",
    "TimerMode",
    "TimerStatus",
    "CronTranslator",
    "TimekeeperSettings",
    "get_settings",
    "TimekeeperError",
    "InvalidWorkerNameError",
    "InvalidIntervalError",
    "ScheduleError",
    "InvalidCronExpressionError",
    "WorkerExistsError",
    "ScopeError",
]
