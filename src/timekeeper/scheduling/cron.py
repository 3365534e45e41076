"""Cron translator.

Turns a seconds-resolution cron expression into a chain of one-shot
delays. The expression is parsed once; each poll asks for the next
occurrence strictly after "now" and converts it into a delay in
milliseconds for a derived one-shot timer.

Grammar (croniter syntax, seconds first)::

    ┌──────── second (0-59)
    │ ┌────── minute (0-59)
    │ │ ┌──── hour (0-23)
    │ │ │ ┌── day of month (1-31)
    │ │ │ │ ┌ month (1-12)
    │ │ │ │ │ ┌ day of week (0-6)
    * * * * * *

Five-field expressions are accepted and fire at second 0.

Example:
    >>> translator = CronTranslator("*/5 * * * * *")
    >>> nxt = translator.next_occurrence()
    >>> translator.delay_ms(nxt)  # doctest: +SKIP
    3120.5
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo

from croniter import CroniterBadDateError, croniter

from timekeeper.errors import InvalidCronExpressionError

logger = logging.getLogger(__name__)


def _to_croniter_fields(expression: str) -> str:
    """Move a leading seconds field to the end, where croniter expects it."""
    fields = expression.split()
    if len(fields) == 6:
        return " ".join(fields[1:] + fields[:1])
    if len(fields) == 5:
        return " ".join(fields)
    raise ValueError(f"expected 5 or 6 fields, got {len(fields)}")


def local_now(tz: tzinfo | None = None) -> datetime:
    """Aware "now" in ``tz``, or in the process-local zone when None."""
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


class CronTranslator:
    """Parsed cron expression that yields next occurrences and delays."""

    def __init__(self, expression: str, timezone: tzinfo | None = None) -> None:
        """Parse ``expression``.

        Args:
            expression: Cron expression, seconds first
            timezone: Zone the expression is evaluated in (None = process local)

        Raises:
            InvalidCronExpressionError: If the expression cannot be parsed
        """
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidCronExpressionError(str(expression))

        try:
            normalized = _to_croniter_fields(expression.strip())
        except ValueError as e:
            raise InvalidCronExpressionError(expression, cause=e) from e

        if not croniter.is_valid(normalized):
            raise InvalidCronExpressionError(expression)

        self.expression = expression
        self.timezone = timezone
        self._normalized = normalized

    def __repr__(self) -> str:
        return f"CronTranslator({self.expression!r})"

    def next_occurrence(self, after: datetime | None = None) -> datetime | None:
        """Next fire instant strictly after ``after`` (default: now).

        Returns:
            Aware datetime, or None if the schedule has no further occurrence
        """
        base = after if after is not None else local_now(self.timezone)
        if base.tzinfo is None:
            base = base.astimezone() if self.timezone is None else base.replace(tzinfo=self.timezone)
        elif self.timezone is not None:
            base = base.astimezone(self.timezone)

        try:
            return croniter(self._normalized, base).get_next(datetime)
        except CroniterBadDateError:
            logger.info(f"Cron expression {self.expression!r} has no occurrence after {base}")
            return None

    def upcoming(self, count: int, after: datetime | None = None) -> list[datetime]:
        """Up to ``count`` consecutive occurrences after ``after``."""
        occurrences: list[datetime] = []
        current = after
        for _ in range(count):
            nxt = self.next_occurrence(current)
            if nxt is None:
                break
            occurrences.append(nxt)
            current = nxt
        return occurrences

    @staticmethod
    def delay_ms(next_time: datetime, now: datetime | None = None) -> float:
        """Milliseconds from ``now`` until ``next_time``, never negative.

        Naive datetimes are treated as process-local time.
        """
        if now is None:
            now = datetime.now(next_time.tzinfo) if next_time.tzinfo else datetime.now()
        elif (now.tzinfo is None) != (next_time.tzinfo is None):
            next_time = next_time.astimezone()
            now = now.astimezone()
        return max(0.0, (next_time - now).total_seconds() * 1000.0)
