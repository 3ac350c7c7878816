import logging
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.redis import RedisClient, redis_client
from booking_engine.models.appointment import Appointment, AppointmentStatus
from booking_engine.models.business import Business
from booking_engine.models.service import Service
from booking_engine.models.staff import Staff
from booking_engine.models.staff_unavailability import StaffUnavailability
from booking_engine.scheduling.conflicts import SlotCandidate, is_free
from booking_engine.scheduling.resolver import effective_windows, resolve_for
from booking_engine.scheduling.time_window import format_time, generate_slots
from booking_engine.schemas.scheduling import (
    AvailableSlotsResponse,
    StaffAvailabilityResponse,
    StaffTimeSlot,
)

logger = logging.getLogger(__name__)

PAST_DATE_MESSAGE = "Cannot book appointments in the past"
NOT_BOOKABLE_MESSAGE = "Service is not available for booking"
STAFF_INACTIVE_MESSAGE = "Staff member is not active"
STAFF_UNAVAILABLE_MESSAGE = "Staff member is unavailable on this date"
NO_SLOTS_MESSAGE = "No available time slots for this date"


async def business_today(db: AsyncSession, business_id: int) -> date:
    """Current date in the business's own timezone."""
    tz_name = await db.scalar(select(Business.timezone).where(Business.id == business_id))
    tz = timezone.utc
    if tz_name and tz_name != "UTC":
        try:
            tz = ZoneInfo(tz_name)
        except ZoneInfoNotFoundError:
            logger.warning(f"Unknown timezone {tz_name!r} for business {business_id}, using UTC")
    return datetime.now(tz).date()


async def is_staff_unavailable(db: AsyncSession, staff_id: int, on_date: date) -> bool:
    result = await db.execute(
        select(StaffUnavailability.id)
        .where(
            and_(
                StaffUnavailability.staff_id == staff_id,
                StaffUnavailability.start_date <= on_date,
                StaffUnavailability.end_date >= on_date,
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def load_day_appointments(
    db: AsyncSession,
    on_date: date,
    service_id: Optional[int] = None,
    staff_id: Optional[int] = None,
) -> list[Appointment]:
    """Non-cancelled appointments on ``on_date`` competing for the same resource."""
    if staff_id is not None:
        resource = or_(
            Appointment.staff_id == staff_id,
            and_(
                Appointment.service_id == service_id,
                Appointment.staff_id.is_(None),
            ),
        )
    else:
        resource = Appointment.service_id == service_id
    result = await db.execute(
        select(Appointment)
        .where(
            and_(
                Appointment.date == on_date,
                Appointment.status != AppointmentStatus.CANCELLED.value,
                resource,
            )
        )
        .order_by(Appointment.start_time)
    )
    return list(result.scalars().all())


class AvailabilityService:
    """Read-side slot queries for services and staff members."""

    def __init__(self, db: AsyncSession, cache: Optional[RedisClient] = None):
        self.db = db
        self.cache = cache if cache is not None else redis_client

    async def get_service(self, service_id: int) -> Optional[Service]:
        result = await self.db.execute(select(Service).where(Service.id == service_id))
        return result.scalar_one_or_none()

    async def get_staff(self, staff_id: int) -> Optional[Staff]:
        result = await self.db.execute(select(Staff).where(Staff.id == staff_id))
        return result.scalar_one_or_none()

    async def get_available_slots(
        self,
        service: Service,
        on_date: date,
        staff: Optional[Staff] = None,
        today: Optional[date] = None,
    ) -> AvailableSlotsResponse:
        """Resolved slots for a service that no existing booking occupies."""
        staff_id = staff.id if staff is not None else None

        if today is None:
            today = await business_today(self.db, service.business_id)
        if on_date < today:
            return AvailableSlotsResponse(available=False, message=PAST_DATE_MESSAGE)

        cached = await self.cache.get_available_slots(service.id, on_date, staff_id)
        if cached is not None:
            logger.debug(f"Available slots cache hit for service {service.id} on {on_date}")
            return AvailableSlotsResponse(**cached)

        response = await self._compute_available_slots(service, on_date, staff)
        await self.cache.set_available_slots(
            service.id, on_date, staff_id, response.model_dump(mode="json")
        )
        return response

    async def _compute_available_slots(
        self, service: Service, on_date: date, staff: Optional[Staff]
    ) -> AvailableSlotsResponse:
        if not service.is_bookable:
            return AvailableSlotsResponse(available=False, message=NOT_BOOKABLE_MESSAGE)

        staff_id = None
        if staff is not None:
            staff_id = staff.id
            if not staff.is_active:
                return AvailableSlotsResponse(
                    available=False, message=STAFF_INACTIVE_MESSAGE
                )
            if await is_staff_unavailable(self.db, staff.id, on_date):
                return AvailableSlotsResponse(
                    available=False, message=STAFF_UNAVAILABLE_MESSAGE
                )

        slots = resolve_for(service, staff, on_date, settings.SLOT_STEP_MINUTES)
        existing = await load_day_appointments(self.db, on_date, service.id, staff_id)
        free_slots = [
            slot
            for slot in slots
            if is_free(
                SlotCandidate(
                    service_id=service.id,
                    staff_id=staff_id,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                ),
                on_date,
                existing,
            )
        ]

        logger.info(
            f"Service {service.id} on {on_date}: {len(free_slots)} of "
            f"{len(slots)} slots free"
        )
        if not free_slots:
            return AvailableSlotsResponse(available=False, message=NO_SLOTS_MESSAGE)
        return AvailableSlotsResponse(available=True, time_slots=free_slots)

    async def get_staff_day_availability(
        self,
        staff: Staff,
        on_date: date,
        service: Optional[Service] = None,
    ) -> StaffAvailabilityResponse:
        """Every slot of a staff member's day, flagged free or busy."""

        def unavailable(message: str) -> StaffAvailabilityResponse:
            return StaffAvailabilityResponse(
                staff_id=staff.id, date=on_date, available=False, message=message
            )

        if not staff.is_active:
            return unavailable(STAFF_INACTIVE_MESSAGE)
        if await is_staff_unavailable(self.db, staff.id, on_date):
            return unavailable(STAFF_UNAVAILABLE_MESSAGE)

        if service is not None:
            candidates = [
                (slot.start_time, slot.end_time)
                for slot in resolve_for(
                    service, staff, on_date, settings.SLOT_STEP_MINUTES
                )
            ]
        elif staff.availability is None:
            return unavailable("Staff member has no weekly schedule")
        else:
            step = settings.SLOT_STEP_MINUTES
            candidates = [
                (format_time(start), format_time(end))
                for window in effective_windows(on_date, staff.availability)
                for start, end in generate_slots(window, step, step)
            ]

        service_id = service.id if service is not None else None
        existing = await load_day_appointments(self.db, on_date, service_id, staff.id)
        time_slots = [
            StaffTimeSlot(
                start_time=start,
                end_time=end,
                is_available=is_free(
                    SlotCandidate(
                        service_id=service_id,
                        staff_id=staff.id,
                        start_time=start,
                        end_time=end,
                    ),
                    on_date,
                    existing,
                ),
            )
            for start, end in candidates
        ]

        if not any(slot.is_available for slot in time_slots):
            return StaffAvailabilityResponse(
                staff_id=staff.id,
                date=on_date,
                available=False,
                time_slots=time_slots,
                message=NO_SLOTS_MESSAGE,
            )
        return StaffAvailabilityResponse(
            staff_id=staff.id, date=on_date, available=True, time_slots=time_slots
        )
