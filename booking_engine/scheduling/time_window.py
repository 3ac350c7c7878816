"""Minute-of-day arithmetic for "HH:MM" times and half-open time ranges.

A range is a ``(start, end)`` tuple of minutes since midnight, interpreted as
``[start, end)``. A range whose start is not before its end is empty.
"""

import re
from typing import Optional

from booking_engine.core.exceptions import InvalidInputError, InvalidTimeFormatError

TimeRange = tuple[int, int]

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DEFAULT_STEP_MINUTES = 30


def parse_time(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise InvalidTimeFormatError(value)
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_time(minutes: int) -> str:
    """Convert minutes since midnight back to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_empty(window: TimeRange) -> bool:
    return window[0] >= window[1]


def intersect(a: TimeRange, b: TimeRange) -> Optional[TimeRange]:
    """Overlapping part of two ranges, or None when they are disjoint."""
    start = max(a[0], b[0])
    end = min(a[1], b[1])
    if start >= end:
        return None
    return start, end


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def subtract(window: TimeRange, gap: TimeRange) -> list[TimeRange]:
    """Remove ``gap`` from ``window``, leaving at most two sub-windows."""
    if is_empty(window):
        return []
    if is_empty(gap) or not overlaps(window, gap):
        return [window]

    remaining = []
    if window[0] < gap[0]:
        remaining.append((window[0], gap[0]))
    if gap[1] < window[1]:
        remaining.append((gap[1], window[1]))
    return remaining


def contains(window: TimeRange, candidate: TimeRange) -> bool:
    return window[0] <= candidate[0] and candidate[1] <= window[1]


def generate_slots(
    window: TimeRange,
    step_minutes: int = DEFAULT_STEP_MINUTES,
    duration_minutes: int = DEFAULT_STEP_MINUTES,
) -> list[TimeRange]:
    """Slots of ``duration_minutes`` starting every ``step_minutes`` inside ``window``.

    The first slot starts at the window start. Generation stops at the first
    slot that would end after the window end, so partial slots never appear.
    """
    if step_minutes <= 0:
        raise InvalidInputError("Slot step must be a positive number of minutes")
    if duration_minutes <= 0:
        raise InvalidInputError("Slot duration must be a positive number of minutes")

    slots = []
    start = window[0]
    while start + duration_minutes <= window[1]:
        slots.append((start, start + duration_minutes))
        start += step_minutes
    return slots
