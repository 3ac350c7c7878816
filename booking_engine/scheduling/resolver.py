"""Bookable slot computation for a service, optionally narrowed to one staff member."""

from datetime import date
from typing import Optional

from booking_engine.scheduling.time_window import (
    DEFAULT_STEP_MINUTES,
    TimeRange,
    format_time,
    generate_slots,
    intersect,
    subtract,
)
from booking_engine.schemas.scheduling import AvailabilityWindow, TimeSlot

FULL_DAY: TimeRange = (0, 24 * 60)


def effective_windows(
    on_date: date, *hours: Optional[AvailabilityWindow]
) -> list[TimeRange]:
    """Time ranges on ``on_date`` covered by every given schedule, minus breaks.

    ``None`` schedules impose no restriction. A date outside any schedule's
    days, disjoint hours, or a break covering everything yield an empty list.
    """
    schedules = [h for h in hours if h is not None]
    if not schedules:
        return []

    window: Optional[TimeRange] = FULL_DAY
    for schedule in schedules:
        if not schedule.is_open_on(on_date):
            return []
        window = intersect(window, schedule.window)
        if window is None:
            return []

    windows = [window]
    for schedule in schedules:
        gap = schedule.break_window
        if gap is not None:
            windows = [piece for w in windows for piece in subtract(w, gap)]
    return windows


def resolve(
    service_hours: AvailabilityWindow,
    staff_hours: Optional[AvailabilityWindow],
    on_date: date,
    duration_minutes: int,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> list[TimeSlot]:
    """Candidate slots for a service on ``on_date`` in chronological order.

    Past dates are not rejected here; temporal validity belongs to the booking
    flow.
    """
    slots = []
    for window in effective_windows(on_date, service_hours, staff_hours):
        for start, end in generate_slots(window, step_minutes, duration_minutes):
            slots.append(TimeSlot(start_time=format_time(start), end_time=format_time(end)))
    return slots


def resolve_for(service, staff, on_date: date, default_step_minutes: int) -> list[TimeSlot]:
    """Resolve slots straight from ``Service`` / ``Staff`` rows."""
    if staff is not None and not staff.is_active:
        return []
    step = service.slot_step_minutes or default_step_minutes
    return resolve(
        service.availability,
        staff.availability if staff is not None else None,
        on_date,
        service.duration_minutes,
        step,
    )
