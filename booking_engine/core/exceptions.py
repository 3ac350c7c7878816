from datetime import date
from enum import Enum
from typing import Optional


class BookingReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    OUT_OF_WINDOW = "out_of_window"
    SLOT_TAKEN = "slot_taken"
    AMBIGUOUS_TERMINATION = "ambiguous_termination"
    RECURRENCE_TOO_LONG = "recurrence_too_long"
    SERIES_REJECTED = "series_rejected"


class BookingError(ValueError):
    """Base class for every scheduling failure reported back to the caller."""

    reason = BookingReason.INVALID_INPUT
    status_code = 400

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict:
        payload = {"error": self.message, "reason": self.reason.value}
        if self.stage:
            payload["stage"] = self.stage
        return payload


class InvalidInputError(BookingError):
    reason = BookingReason.INVALID_INPUT
    status_code = 400


class InvalidTimeFormatError(InvalidInputError):
    def __init__(self, value: object):
        super().__init__(f"Invalid time format {value!r}, expected HH:MM")
        self.value = value


class InvalidStatusTransitionError(InvalidInputError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class OutOfWindowError(BookingError):
    reason = BookingReason.OUT_OF_WINDOW
    status_code = 422


class SlotTakenError(BookingError):
    reason = BookingReason.SLOT_TAKEN
    status_code = 409


class AmbiguousTerminationError(BookingError):
    reason = BookingReason.AMBIGUOUS_TERMINATION
    status_code = 400

    def __init__(self, message: str = "Exactly one of end_date or occurrences is required"):
        super().__init__(message)


class RecurrenceTooLongError(BookingError):
    reason = BookingReason.RECURRENCE_TOO_LONG
    status_code = 400

    def __init__(self, limit: int):
        super().__init__(f"Recurrence expands to more than {limit} occurrences")
        self.limit = limit


class SeriesRejectedError(BookingError):
    """A recurring request where one or more occurrences cannot be booked.

    Nothing is persisted when this is raised; ``failing_dates`` lists every
    occurrence that failed together with the reason it failed.
    """

    reason = BookingReason.SERIES_REJECTED
    status_code = 409

    def __init__(self, failing_dates: list[tuple[date, BookingError]]):
        super().__init__(
            f"{len(failing_dates)} occurrence(s) of the recurring series cannot be booked",
            stage="partially_failed",
        )
        self.failing_dates = failing_dates

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["failing_dates"] = [
            {
                "date": failed_on.isoformat(),
                "reason": error.reason.value,
                "message": error.message,
            }
            for failed_on, error in self.failing_dates
        ]
        return payload
