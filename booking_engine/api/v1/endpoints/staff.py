from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.database import get_db
from booking_engine.schemas.appointment import (
    AppointmentFilters,
    AppointmentList,
    AppointmentStatus,
)
from booking_engine.schemas.scheduling import (
    StaffAvailabilityResponse,
    StaffAvailabilityUpdate,
)
from booking_engine.schemas.staff import (
    StaffSchedule,
    StaffUnavailable,
    StaffUnavailableCreate,
)
from booking_engine.services.appointment import AppointmentService
from booking_engine.services.availability import AvailabilityService
from booking_engine.services.staff import StaffService

router = APIRouter()


async def _get_staff_or_404(service: StaffService, staff_id: int):
    staff = await service.get_staff(staff_id)
    if not staff:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found"
        )
    return staff


@router.get("/{staff_id}/availability/{date}", response_model=StaffAvailabilityResponse)
async def get_staff_availability(
    staff_id: int,
    date: date,
    service_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a staff member's slots for one day.

    - **service_id**: narrow the day to a service's hours and duration
    - Busy slots are returned with ``is_available`` false
    """
    staff = await _get_staff_or_404(StaffService(db), staff_id)
    availability = AvailabilityService(db)

    service = None
    if service_id is not None:
        service = await availability.get_service(service_id)
        if not service or service.business_id != staff.business_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Service not found"
            )

    return await availability.get_staff_day_availability(staff, date, service)


@router.put("/{staff_id}/availability", response_model=StaffSchedule)
async def update_staff_availability(
    staff_id: int,
    availability: StaffAvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
):
    service = StaffService(db)
    staff = await _get_staff_or_404(service, staff_id)
    return await service.update_availability(staff, availability)


@router.post(
    "/{staff_id}/unavailable",
    response_model=StaffUnavailable,
    status_code=status.HTTP_201_CREATED,
)
async def add_staff_unavailable_dates(
    staff_id: int,
    unavailable: StaffUnavailableCreate,
    db: AsyncSession = Depends(get_db),
):
    service = StaffService(db)
    staff = await _get_staff_or_404(service, staff_id)
    return await service.add_unavailable_dates(staff, unavailable)


@router.get("/{staff_id}/unavailable", response_model=List[StaffUnavailable])
async def get_staff_unavailable_dates(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
):
    service = StaffService(db)
    await _get_staff_or_404(service, staff_id)
    return await service.list_unavailable_dates(staff_id)


@router.get("/{staff_id}/assignments", response_model=AppointmentList)
async def get_staff_assignments(
    staff_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Appointments assigned to a staff member, optionally within a date range."""
    await _get_staff_or_404(StaffService(db), staff_id)
    filters = AppointmentFilters(status=status, start_date=start_date, end_date=end_date)
    appointments, total_count = await AppointmentService(db).list_staff_appointments(
        staff_id, filters, page, page_size
    )
    return AppointmentList.paginate(appointments, total_count, page, page_size)
