"""
Shared pytest fixtures for timekeeper tests.

This module provides:
- Settings cache isolation
- A fast-polling scheduler that is disposed after each test
- ``wait_until`` for polling thread-driven state
"""

import sys
import time
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

# Ensure timekeeper package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from timekeeper.scheduling import TaskScheduler
from timekeeper.settings import TimekeeperSettings, clear_settings_cache


def _wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it returns True or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture(autouse=True)
def _isolate_settings() -> Generator[None, None, None]:
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    return _wait_until


@pytest.fixture
def settings() -> TimekeeperSettings:
    return TimekeeperSettings(cron_poll_interval_ms=50, default_once_delay_ms=10)


@pytest.fixture
def scheduler(settings: TimekeeperSettings) -> Generator[TaskScheduler, None, None]:
    sched = TaskScheduler(settings=settings)
    yield sched
    sched.dispose_all()
