"""Execution scope helpers.

Scheduled callbacks often need a fresh scope (a database session, a
container child scope) and must flush pending unit-of-work state once they
finish. The scheduler does not know what a scope is; it only accepts a
``scope_runner``: a callable that runs an action inside a scope.

A scope factory is any zero-argument callable returning a context manager.
For unit-of-work execution, the object yielded by that context manager must
expose ``flush()``.

Example:
    >>> @contextmanager
    ... def session_scope():
    ...     session = Session()
    ...     try:
    ...         yield session
    ...     finally:
    ...         session.close()
    >>>
    >>> scheduler = TaskScheduler(scope_runner=unit_of_work_runner(session_scope))
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any, Protocol, TypeVar, runtime_checkable

from timekeeper.errors import ScopeError
from timekeeper.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

ScopeFactory = Callable[[], AbstractContextManager[Any]]


@runtime_checkable
class UnitOfWork(Protocol):
    """A scope that can flush pending work."""

    def flush(self) -> None: ...


def create_scope(handle: Callable[[Any], T], scope_factory: ScopeFactory) -> T:
    """Run ``handle(scope)`` inside a fresh scope and return its result.

    Raises:
        ValueError: If handle or scope_factory is None
    """
    if handle is None:
        raise ValueError("handle is required")
    if scope_factory is None:
        raise ValueError("scope_factory is required")

    with scope_factory() as scope:
        return handle(scope)


def create_unit_of_work(handle: Callable[[Any], T], scope_factory: ScopeFactory) -> T:
    """Run ``handle(scope)`` inside a fresh scope, then flush pending work.

    The flush only happens when ``handle`` returns normally.

    Raises:
        ValueError: If handle or scope_factory is None
        ScopeError: If the scope does not support flushing
    """
    if handle is None:
        raise ValueError("handle is required")
    if scope_factory is None:
        raise ValueError("scope_factory is required")

    with scope_factory() as scope:
        if not isinstance(scope, UnitOfWork):
            raise ScopeError(
                f"Scope of type {type(scope).__name__} cannot flush pending work"
            )
        result = handle(scope)
        scope.flush()
        log.debug("unit_of_work_flushed", scope=type(scope).__name__)
        return result


def scope_runner(scope_factory: ScopeFactory) -> Callable[[Callable[[], T]], T]:
    """Build a scheduler ``scope_runner`` that runs each action in a scope."""

    def run(action: Callable[[], T]) -> T:
        return create_scope(lambda _scope: action(), scope_factory)

    return run


def unit_of_work_runner(scope_factory: ScopeFactory) -> Callable[[Callable[[], T]], T]:
    """Build a scheduler ``scope_runner`` that flushes after each action."""

    def run(action: Callable[[], T]) -> T:
        return create_unit_of_work(lambda _scope: action(), scope_factory)

    return run


__all__ = [
    "ScopeFactory",
    "UnitOfWork",
    "create_scope",
    "create_unit_of_work",
    "scope_runner",
    "unit_of_work_runner",
]
