from datetime import date as date_type
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from booking_engine.scheduling.time_window import (
    TIME_PATTERN,
    TimeRange,
    parse_time,
)


class WeekDay(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, value: date_type) -> "WeekDay":
        return list(cls)[value.weekday()]


class AvailabilityWindow(BaseModel):
    """Weekly opening hours: the days it applies to and one daily time range."""

    days: List[WeekDay] = Field(default_factory=list)
    start_time: str = Field(..., pattern=TIME_PATTERN.pattern)
    end_time: str = Field(..., pattern=TIME_PATTERN.pattern)
    break_start_time: Optional[str] = Field(None, pattern=TIME_PATTERN.pattern)
    break_end_time: Optional[str] = Field(None, pattern=TIME_PATTERN.pattern)

    @field_validator("days", mode="before")
    @classmethod
    def normalize_days(cls, v):
        if v is None:
            return []
        return [day.strip().lower() if isinstance(day, str) else day for day in v]

    @model_validator(mode="after")
    def break_times_paired(self):
        if (self.break_start_time is None) != (self.break_end_time is None):
            raise ValueError("break_start_time and break_end_time must be set together")
        return self

    @property
    def window(self) -> TimeRange:
        return parse_time(self.start_time), parse_time(self.end_time)

    @property
    def break_window(self) -> Optional[TimeRange]:
        if self.break_start_time is None or self.break_end_time is None:
            return None
        return parse_time(self.break_start_time), parse_time(self.break_end_time)

    def is_open_on(self, value: date_type) -> bool:
        return WeekDay.from_date(value) in self.days


class StaffAvailabilityUpdate(AvailabilityWindow):
    days: List[WeekDay] = Field(..., min_length=1)

    @model_validator(mode="after")
    def end_after_start(self):
        if parse_time(self.end_time) <= parse_time(self.start_time):
            raise ValueError("End time must be after start time")
        if (
            self.break_start_time
            and self.break_end_time
            and parse_time(self.break_end_time) <= parse_time(self.break_start_time)
        ):
            raise ValueError("Break end time must be after break start time")
        return self


class TimeSlot(BaseModel):
    start_time: str
    end_time: str


class StaffTimeSlot(TimeSlot):
    is_available: bool


class AvailableSlotsResponse(BaseModel):
    available: bool
    time_slots: List[TimeSlot] = Field(default_factory=list)
    message: Optional[str] = None


class StaffAvailabilityResponse(BaseModel):
    staff_id: int
    date: date_type
    available: bool
    time_slots: List[StaffTimeSlot] = Field(default_factory=list)
    message: Optional[str] = None
