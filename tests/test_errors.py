"""Tests for timekeeper.errors - structured error hierarchy."""

from __future__ import annotations

import pytest

from timekeeper.errors import (
    ErrorCategory,
    ErrorContext,
    InvalidCronExpressionError,
    InvalidIntervalError,
    InvalidWorkerNameError,
    ScheduleError,
    ScopeError,
    TimekeeperError,
    ValidationError,
    WorkerExistsError,
    categorize_error,
)


class TestTimekeeperError:
    def test_defaults(self):
        err = TimekeeperError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False
        assert err.cause is None

    def test_overrides(self):
        err = TimekeeperError("boom", category=ErrorCategory.SCOPE, retryable=True)
        assert err.category == ErrorCategory.SCOPE
        assert err.retryable is True

    def test_cause_is_chained(self):
        cause = KeyError("x")
        err = TimekeeperError("boom", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == str(cause)

    def test_with_context(self):
        err = ScheduleError("failed").with_context(worker="nightly", attempt=2)
        assert err.context.worker == "nightly"
        assert err.context.metadata == {"attempt": 2}

    def test_to_dict(self):
        data = ScheduleError("failed").with_context(worker="nightly").to_dict()
        assert data == {
            "error_type": "ScheduleError",
            "message": "failed",
            "category": "ORCHESTRATION",
            "retryable": False,
            "context": {"worker": "nightly"},
        }

    def test_to_dict_without_context(self):
        assert "context" not in TimekeeperError("boom").to_dict()

    def test_repr(self):
        assert repr(ScopeError("nope")) == "ScopeError('nope', category=SCOPE)"


class TestErrorContext:
    def test_empty(self):
        assert ErrorContext().to_dict() == {}

    def test_metadata_merged(self):
        ctx = ErrorContext(worker="w", metadata={"interval_ms": 5})
        assert ctx.to_dict() == {"worker": "w", "interval_ms": 5}


class TestValidationErrors:
    def test_invalid_worker_name(self):
        err = InvalidWorkerNameError(None)
        assert isinstance(err, ValidationError)
        assert isinstance(err, ValueError)
        assert err.worker_name is None
        assert err.category == ErrorCategory.VALIDATION

    def test_invalid_worker_name_custom_message(self):
        err = InvalidWorkerNameError(">>> x", "reserved")
        assert err.message == "reserved"
        assert err.context.worker == ">>> x"

    def test_invalid_interval(self):
        err = InvalidIntervalError(-1, worker="job")
        assert isinstance(err, ValueError)
        assert err.interval_ms == -1
        assert err.context.to_dict() == {"worker": "job", "interval_ms": -1}

    def test_caught_as_value_error(self):
        with pytest.raises(ValueError):
            raise InvalidWorkerNameError("")


class TestScheduleErrors:
    def test_invalid_cron_expression(self):
        cause = ValueError("bad fields")
        err = InvalidCronExpressionError("* *", cause=cause)
        assert isinstance(err, ScheduleError)
        assert isinstance(err, ValueError)
        assert err.expression == "* *"
        assert err.__cause__ is cause
        assert err.category == ErrorCategory.ORCHESTRATION

    def test_worker_exists(self):
        err = WorkerExistsError("job")
        assert err.worker_name == "job"
        assert "job" in err.message
        assert not isinstance(err, ValueError)


class TestCategorizeError:
    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (InvalidIntervalError(0), ErrorCategory.VALIDATION),
            (ScopeError("x"), ErrorCategory.SCOPE),
            (ValueError("x"), ErrorCategory.VALIDATION),
            (TypeError("x"), ErrorCategory.VALIDATION),
            (RuntimeError("x"), ErrorCategory.INTERNAL),
        ],
    )
    def test_categories(self, error, category):
        assert categorize_error(error) == category

    def test_every_category_is_used(self):
        assert {c.value for c in ErrorCategory} == {"VALIDATION", "ORCHESTRATION", "SCOPE", "INTERNAL"}
