from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, model_validator

from booking_engine.schemas.scheduling import WeekDay


class StaffUnavailableCreate(BaseModel):
    start_date: date
    end_date: Optional[date] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date is None:
            self.end_date = self.start_date
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class StaffUnavailable(BaseModel):
    id: int
    uuid: UUID
    staff_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StaffSchedule(BaseModel):
    id: int
    uuid: UUID
    business_id: int
    name: str
    position: Optional[str] = None
    is_active: bool
    available_days: Optional[List[WeekDay]] = None
    available_start_time: Optional[str] = None
    available_end_time: Optional[str] = None
    break_start_time: Optional[str] = None
    break_end_time: Optional[str] = None

    class Config:
        from_attributes = True
