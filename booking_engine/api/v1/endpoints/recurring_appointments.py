from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.database import get_db
from booking_engine.models.recurring_appointment import RecurringStatus
from booking_engine.schemas.recurring_appointment import (
    RecurrencePreview,
    RecurrencePreviewRequest,
    RecurringAppointment,
    RecurringAppointmentCreate,
    RecurringAppointmentSummary,
    RecurringDeleteResult,
    RecurringStatusUpdate,
)
from booking_engine.services.booking import BookingOrchestrator
from booking_engine.services.recurring_appointment import RecurringAppointmentService

router = APIRouter()


async def _get_series_or_404(service: RecurringAppointmentService, series_uuid: UUID):
    series = await service.get_by_uuid(series_uuid)
    if not series:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recurring appointment not found",
        )
    return series


@router.post(
    "/", response_model=RecurringAppointment, status_code=status.HTTP_201_CREATED
)
async def create_recurring_appointment(
    series_data: RecurringAppointmentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Book a recurring series. Either every occurrence is booked or none is."""
    orchestrator = BookingOrchestrator(db)
    return await orchestrator.book_recurring(series_data)


@router.post("/preview", response_model=RecurrencePreview)
async def preview_recurrence(preview_request: RecurrencePreviewRequest):
    """Dates a recurrence rule would produce, without booking anything."""
    return RecurringAppointmentService.preview(preview_request)


@router.get("/business/{business_id}", response_model=List[RecurringAppointmentSummary])
async def get_business_recurring_appointments(
    business_id: int,
    status: Optional[RecurringStatus] = Query(None),
    customer_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await RecurringAppointmentService(db).list_for_business(
        business_id, status=status, customer_id=customer_id
    )


@router.get("/customer/{customer_id}", response_model=List[RecurringAppointmentSummary])
async def get_customer_recurring_appointments(
    customer_id: str,
    status: Optional[RecurringStatus] = Query(None),
    business_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await RecurringAppointmentService(db).list_for_customer(
        customer_id, status=status, business_id=business_id
    )


@router.get("/{series_uuid}", response_model=RecurringAppointment)
async def get_recurring_appointment(
    series_uuid: UUID,
    db: AsyncSession = Depends(get_db),
):
    return await _get_series_or_404(RecurringAppointmentService(db), series_uuid)


@router.patch("/{series_uuid}/status", response_model=RecurringAppointment)
async def update_recurring_status(
    series_uuid: UUID,
    status_update: RecurringStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Pause, resume, complete or cancel a series.

    - **delete_future_appointments**: when cancelling, also cancel every
      occurrence dated today or later
    """
    service = RecurringAppointmentService(db)
    series = await _get_series_or_404(service, series_uuid)
    return await service.update_status(
        series,
        status_update.status,
        delete_future_appointments=status_update.delete_future_appointments,
    )


@router.delete("/{series_uuid}", response_model=RecurringDeleteResult)
async def delete_recurring_appointment(
    series_uuid: UUID,
    delete_future_appointments: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    service = RecurringAppointmentService(db)
    series = await _get_series_or_404(service, series_uuid)
    cancelled = await service.delete(
        series, delete_future_appointments=delete_future_appointments
    )
    return RecurringDeleteResult(success=True, cancelled_appointments=cancelled)
