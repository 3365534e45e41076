"""
Structured error types for timekeeper.

Every error raised by the scheduler carries a category, a retry flag and a
small structured context, so callers can log or route failures without
parsing messages.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     TimekeeperError                          │
        │             (category, retryable, context, cause)            │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ValidationError          ScheduleError        ScopeError    │
        │  (VALIDATION)             (ORCHESTRATION)      (SCOPE)       │
        │       │                        │                             │
        │  InvalidWorkerNameError   InvalidCronExpressionError         │
        │  InvalidIntervalError     WorkerExistsError                  │
        └─────────────────────────────────────────────────────────────┘

Not every failure is an error here. Registering without a callback, or
starting/stopping/canceling an unknown worker, are silent no-ops, and a
cron schedule that runs out of occurrences cancels its own worker.

Examples:
    >>> error = InvalidWorkerNameError(None)
    >>> error.category
    <ErrorCategory.VALIDATION: 'VALIDATION'>
    >>> isinstance(error, ValueError)
    True

    >>> error = ScheduleError("bad schedule").with_context(worker="nightly")
    >>> error.context.worker
    'nightly'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"  # Bad arguments from the caller
    ORCHESTRATION = "ORCHESTRATION"  # Schedule registration/evaluation
    SCOPE = "SCOPE"  # Execution scope collaborator
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        worker: Name of the worker involved
        expression: Cron expression being evaluated
        metadata: Additional key-value pairs
    """

    worker: str | None = None
    expression: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("worker", "expression"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TimekeeperError(Exception):
    """Base exception for all timekeeper errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TimekeeperError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ScheduleError("Failed").with_context(worker="nightly")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (Never Retryable)
# =============================================================================


class ValidationError(TimekeeperError):
    """Invalid argument supplied by the caller."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidWorkerNameError(ValidationError, ValueError):
    """Worker name is missing, blank, or uses the reserved sub-task prefix."""

    def __init__(self, name: str | None, message: str | None = None):
        self.worker_name = name
        super().__init__(
            message or f"Worker name must be a non-blank string, got {name!r}",
            context=ErrorContext(worker=name),
        )


class InvalidIntervalError(ValidationError, ValueError):
    """Interval is not a positive, finite number of milliseconds."""

    def __init__(self, interval_ms: Any, worker: str | None = None):
        self.interval_ms = interval_ms
        super().__init__(
            f"Interval must be a positive number of milliseconds, got {interval_ms!r}",
            context=ErrorContext(worker=worker, metadata={"interval_ms": interval_ms}),
        )


# =============================================================================
# SCHEDULE ERRORS
# =============================================================================


class ScheduleError(TimekeeperError):
    """Schedule configuration or evaluation error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class InvalidCronExpressionError(ScheduleError, ValueError):
    """Cron expression could not be parsed."""

    def __init__(self, expression: str, cause: Exception | None = None):
        self.expression = expression
        super().__init__(
            f"Invalid cron expression: {expression!r}",
            context=ErrorContext(expression=expression),
            cause=cause,
        )


class WorkerExistsError(ScheduleError):
    """A worker with the same name is already registered."""

    def __init__(self, name: str):
        self.worker_name = name
        super().__init__(
            f"Worker already registered: {name}",
            context=ErrorContext(worker=name),
        )


# =============================================================================
# SCOPE ERRORS
# =============================================================================


class ScopeError(TimekeeperError):
    """Execution scope could not run or flush pending work."""

    default_category = ErrorCategory.SCOPE
    default_retryable = False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, TimekeeperError):
        return error.category
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TimekeeperError",
    "ValidationError",
    "InvalidWorkerNameError",
    "InvalidIntervalError",
    "ScheduleError",
    "InvalidCronExpressionError",
    "WorkerExistsError",
    "ScopeError",
    "categorize_error",
]
