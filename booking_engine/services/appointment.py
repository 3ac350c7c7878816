import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import InvalidStatusTransitionError
from booking_engine.core.redis import RedisClient, redis_client
from booking_engine.models.appointment import Appointment, AppointmentStatus
from booking_engine.schemas.appointment import AppointmentFilters

logger = logging.getLogger(__name__)


class AppointmentService:
    """Appointment lookups, listings and status changes."""

    def __init__(self, db: AsyncSession, cache: Optional[RedisClient] = None):
        self.db = db
        self.cache = cache if cache is not None else redis_client

    async def get_appointment_by_uuid(self, appointment_uuid: UUID) -> Optional[Appointment]:
        result = await self.db.execute(
            select(Appointment).where(Appointment.uuid == appointment_uuid)
        )
        return result.scalar_one_or_none()

    async def list_business_appointments(
        self,
        business_id: int,
        filters: AppointmentFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[list[Appointment], int]:
        return await self._list(
            Appointment.business_id == business_id, filters, page, page_size
        )

    async def list_customer_appointments(
        self,
        customer_id: str,
        filters: AppointmentFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[list[Appointment], int]:
        return await self._list(
            Appointment.customer_id == customer_id, filters, page, page_size
        )

    async def list_staff_appointments(
        self,
        staff_id: int,
        filters: AppointmentFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[list[Appointment], int]:
        """Appointments assigned to a staff member, oldest first."""
        return await self._list(Appointment.staff_id == staff_id, filters, page, page_size)

    async def _list(
        self, owner_condition, filters: AppointmentFilters, page: int, page_size: int
    ) -> Tuple[list[Appointment], int]:
        conditions = [owner_condition]
        if filters.status:
            conditions.append(Appointment.status == filters.status.value)
        if filters.start_date:
            conditions.append(Appointment.date >= filters.start_date)
        if filters.end_date:
            conditions.append(Appointment.date <= filters.end_date)

        total_count = await self.db.scalar(
            select(func.count(Appointment.id)).where(and_(*conditions))
        )

        result = await self.db.execute(
            select(Appointment)
            .where(and_(*conditions))
            .order_by(Appointment.date, Appointment.start_time)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total_count or 0

    async def transition_status(
        self, appointment: Appointment, new_status: AppointmentStatus
    ) -> Appointment:
        """Move an appointment along its lifecycle; illegal moves raise."""
        current = appointment.status
        if not appointment.transition_to(new_status):
            raise InvalidStatusTransitionError(current, new_status.value)

        await self.db.commit()
        await self.db.refresh(appointment)
        await self.cache.invalidate_available_slots(
            appointment.service_id, appointment.date, appointment.staff_id
        )

        logger.info(
            f"Appointment {appointment.uuid} moved from {current} to {appointment.status}"
        )
        return appointment
