import math
from datetime import date as date_type, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

# Import enums from the model to avoid duplication
from booking_engine.models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    """Booking request. Times are validated by the booking flow."""

    business_id: Optional[int] = None
    service_id: int
    staff_id: Optional[int] = None
    customer_id: str = Field(..., min_length=1, max_length=255)
    date: date_type
    start_time: str
    # Defaults to start_time + service duration
    end_time: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    """Reschedule request. Omitted fields keep their current values."""

    date: Optional[date_type] = None
    start_time: Optional[str] = None
    # Defaults to start_time + service duration when start_time changes
    end_time: Optional[str] = None
    staff_id: Optional[int] = None
    notes: Optional[str] = None


class StaffAssignment(BaseModel):
    staff_id: int


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


# Response schemas
class Appointment(BaseModel):
    id: int
    uuid: UUID
    business_id: int
    service_id: int
    staff_id: Optional[int] = None
    customer_id: str
    recurring_appointment_id: Optional[int] = None
    date: date_type
    start_time: str
    end_time: str
    status: AppointmentStatus
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentList(BaseModel):
    appointments: List[Appointment]
    total_count: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def paginate(
        cls, appointments, total_count: int, page: int, page_size: int
    ) -> "AppointmentList":
        return cls(
            appointments=appointments,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if total_count else 0,
        )


class AppointmentFilters(BaseModel):
    status: Optional[AppointmentStatus] = None
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
