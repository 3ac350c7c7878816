"""Overlap checks between a candidate slot and existing bookings."""

from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel

from booking_engine.scheduling.time_window import TimeRange, overlaps, parse_time

CANCELLED = "cancelled"


class SlotCandidate(BaseModel):
    service_id: Optional[int] = None
    staff_id: Optional[int] = None
    start_time: str
    end_time: str

    @property
    def time_range(self) -> TimeRange:
        return parse_time(self.start_time), parse_time(self.end_time)


def _status_value(appointment) -> str:
    status = appointment.status
    return getattr(status, "value", status)


def _competes_with(candidate: SlotCandidate, on_date: date, appointment) -> bool:
    if appointment.date != on_date:
        return False
    if _status_value(appointment) == CANCELLED:
        return False
    if candidate.staff_id is not None and appointment.staff_id is not None:
        return appointment.staff_id == candidate.staff_id
    # A booking without staff holds the service itself
    return appointment.service_id == candidate.service_id


def find_conflicts(candidate: SlotCandidate, on_date: date, existing: Iterable) -> list:
    """Existing non-cancelled bookings whose ``[start, end)`` overlaps the candidate.

    Two bookings compete when both have staff and it is the same member, or
    when either has no staff and they share the service. The relation is
    symmetric.
    """
    wanted = candidate.time_range
    return [
        appointment
        for appointment in existing
        if _competes_with(candidate, on_date, appointment)
        and overlaps(
            wanted,
            (parse_time(appointment.start_time), parse_time(appointment.end_time)),
        )
    ]


def is_free(candidate: SlotCandidate, on_date: date, existing: Iterable) -> bool:
    return not find_conflicts(candidate, on_date, existing)
