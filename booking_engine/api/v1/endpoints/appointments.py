from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.database import get_db
from booking_engine.schemas.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentList,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    StaffAssignment,
)
from booking_engine.schemas.scheduling import AvailableSlotsResponse
from booking_engine.services.appointment import AppointmentService
from booking_engine.services.availability import AvailabilityService
from booking_engine.services.booking import BookingOrchestrator

router = APIRouter()


@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    service_id: int = Query(...),
    date: date = Query(..., description="Date to check (YYYY-MM-DD)"),
    staff_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Bookable time slots for a service, optionally with a specific staff member."""
    availability = AvailabilityService(db)

    service = await availability.get_service(service_id)
    if not service:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Service not found"
        )

    staff = None
    if staff_id is not None:
        staff = await availability.get_staff(staff_id)
        if not staff or staff.business_id != service.business_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found"
            )

    return await availability.get_available_slots(service, date, staff)


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Book a single appointment.

    Failures are reported as ``{error, reason, stage}`` with the status code of
    the failing stage.
    """
    orchestrator = BookingOrchestrator(db)
    return await orchestrator.book_appointment(appointment_data)


@router.get("/business/{business_id}", response_model=AppointmentList)
async def get_business_appointments(
    business_id: int,
    status: Optional[AppointmentStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = AppointmentFilters(status=status, start_date=start_date, end_date=end_date)
    appointments, total_count = await AppointmentService(db).list_business_appointments(
        business_id, filters, page, page_size
    )
    return AppointmentList.paginate(appointments, total_count, page, page_size)


@router.get("/customer/{customer_id}", response_model=AppointmentList)
async def get_customer_appointments(
    customer_id: str,
    status: Optional[AppointmentStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = AppointmentFilters(status=status, start_date=start_date, end_date=end_date)
    appointments, total_count = await AppointmentService(db).list_customer_appointments(
        customer_id, filters, page, page_size
    )
    return AppointmentList.paginate(appointments, total_count, page, page_size)


@router.get("/{appointment_uuid}", response_model=Appointment)
async def get_appointment(
    appointment_uuid: UUID,
    db: AsyncSession = Depends(get_db),
):
    appointment = await AppointmentService(db).get_appointment_by_uuid(appointment_uuid)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found"
        )
    return appointment


@router.patch("/{appointment_uuid}/status", response_model=Appointment)
async def update_appointment_status(
    appointment_uuid: UUID,
    status_update: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Confirm, complete or cancel an appointment."""
    service = AppointmentService(db)
    appointment = await service.get_appointment_by_uuid(appointment_uuid)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found"
        )
    return await service.transition_status(appointment, status_update.status)


@router.put("/{appointment_uuid}", response_model=Appointment)
async def reschedule_appointment(
    appointment_uuid: UUID,
    changes: AppointmentUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Reschedule an appointment.

    - Omitted fields keep their current values
    - The new slot is checked like a new booking, ignoring the appointment itself
    """
    appointment = await AppointmentService(db).get_appointment_by_uuid(appointment_uuid)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found"
        )
    return await BookingOrchestrator(db).reschedule_appointment(appointment, changes)


@router.post("/{appointment_uuid}/assign", response_model=Appointment)
async def assign_staff(
    appointment_uuid: UUID,
    assignment: StaffAssignment,
    db: AsyncSession = Depends(get_db),
):
    """Assign a staff member to an appointment at its current date and time."""
    appointment = await AppointmentService(db).get_appointment_by_uuid(appointment_uuid)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found"
        )
    return await BookingOrchestrator(db).assign_staff(appointment, assignment.staff_id)
