from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from booking_engine.models.recurring_appointment import RecurringStatus
from booking_engine.scheduling.recurrence import RecurrencePattern, RecurrenceRule
from booking_engine.schemas.appointment import Appointment


class RecurrenceFields(BaseModel):
    recurrence_pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = None

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            pattern=self.recurrence_pattern,
            start_date=self.start_date,
            end_date=self.end_date,
            occurrences=self.occurrences,
        )


class RecurringAppointmentCreate(RecurrenceFields):
    business_id: Optional[int] = None
    service_id: int
    staff_id: Optional[int] = None
    customer_id: str = Field(..., min_length=1, max_length=255)
    start_time: str
    end_time: Optional[str] = None
    notes: Optional[str] = None


class RecurrencePreviewRequest(RecurrenceFields):
    pass


class RecurrencePreview(BaseModel):
    dates: List[date]
    count: int


class RecurringStatusUpdate(BaseModel):
    status: RecurringStatus
    delete_future_appointments: bool = False


class RecurringAppointment(BaseModel):
    id: int
    uuid: UUID
    business_id: int
    service_id: int
    staff_id: Optional[int] = None
    customer_id: str
    recurrence_pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = None
    start_time: str
    end_time: str
    status: RecurringStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    appointments: List[Appointment] = Field(default_factory=list)

    class Config:
        from_attributes = True


class RecurringAppointmentSummary(BaseModel):
    id: int
    uuid: UUID
    business_id: int
    service_id: int
    staff_id: Optional[int] = None
    customer_id: str
    recurrence_pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = None
    start_time: str
    end_time: str
    status: RecurringStatus

    class Config:
        from_attributes = True


class RecurringDeleteResult(BaseModel):
    success: bool
    cancelled_appointments: int
