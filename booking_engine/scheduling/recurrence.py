"""Expansion of recurrence rules into concrete occurrence dates."""

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from booking_engine.core.exceptions import (
    AmbiguousTerminationError,
    InvalidInputError,
    RecurrenceTooLongError,
)

DEFAULT_MAX_OCCURRENCES = 366


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


DAY_STEPS = {
    RecurrencePattern.DAILY: 1,
    RecurrencePattern.WEEKLY: 7,
    RecurrencePattern.BIWEEKLY: 14,
}


class RecurrenceRule(BaseModel):
    pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = None


def add_months(start: date, months: int) -> date:
    """Shift by whole calendar months, clamping to the last day of short months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def nth_occurrence(rule: RecurrenceRule, n: int) -> date:
    try:
        # Monthly dates derive from the start date, never from the previous occurrence.
        if rule.pattern == RecurrencePattern.MONTHLY:
            return add_months(rule.start_date, n)
        return rule.start_date + timedelta(days=DAY_STEPS[rule.pattern] * n)
    except (ValueError, OverflowError) as e:
        raise InvalidInputError("Recurrence runs past the supported date range") from e


def expand(rule: RecurrenceRule, max_occurrences: int = DEFAULT_MAX_OCCURRENCES) -> list[date]:
    """Ascending occurrence dates covered by ``rule``.

    Exactly one of ``end_date`` and ``occurrences`` must be set. Rules that
    would produce more than ``max_occurrences`` dates are rejected rather than
    truncated.
    """
    if (rule.end_date is None) == (rule.occurrences is None):
        raise AmbiguousTerminationError()

    if rule.occurrences is not None:
        if rule.occurrences < 1:
            raise InvalidInputError("occurrences must be at least 1")
        if rule.occurrences > max_occurrences:
            raise RecurrenceTooLongError(max_occurrences)
        return [nth_occurrence(rule, n) for n in range(rule.occurrences)]

    if rule.end_date < rule.start_date:
        raise InvalidInputError("end_date must not be before start_date")

    dates = []
    n = 0
    while True:
        try:
            current = nth_occurrence(rule, n)
        except InvalidInputError:
            # Past the last representable date, so past end_date as well
            return dates
        if current > rule.end_date:
            return dates
        if len(dates) == max_occurrences:
            raise RecurrenceTooLongError(max_occurrences)
        dates.append(current)
        n += 1
