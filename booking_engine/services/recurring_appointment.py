import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking_engine.core.config import settings
from booking_engine.core.exceptions import InvalidStatusTransitionError
from booking_engine.core.redis import RedisClient, redis_client
from booking_engine.models.appointment import (
    FINAL_STATUSES,
    Appointment,
    AppointmentStatus,
)
from booking_engine.models.recurring_appointment import (
    RecurringAppointment,
    RecurringStatus,
)
from booking_engine.scheduling.recurrence import expand
from booking_engine.schemas.recurring_appointment import (
    RecurrencePreview,
    RecurrencePreviewRequest,
)
from booking_engine.services.availability import business_today

logger = logging.getLogger(__name__)


class RecurringAppointmentService:
    """Recurring series lookups, lifecycle changes and previews."""

    def __init__(self, db: AsyncSession, cache: Optional[RedisClient] = None):
        self.db = db
        self.cache = cache if cache is not None else redis_client

    async def get_by_uuid(self, series_uuid: UUID) -> Optional[RecurringAppointment]:
        result = await self.db.execute(
            select(RecurringAppointment)
            .options(selectinload(RecurringAppointment.appointments))
            .where(RecurringAppointment.uuid == series_uuid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_business(
        self,
        business_id: int,
        status: Optional[RecurringStatus] = None,
        customer_id: Optional[str] = None,
    ) -> List[RecurringAppointment]:
        conditions = [RecurringAppointment.business_id == business_id]
        if status:
            conditions.append(RecurringAppointment.status == status.value)
        if customer_id:
            conditions.append(RecurringAppointment.customer_id == customer_id)
        return await self._list(conditions)

    async def list_for_customer(
        self,
        customer_id: str,
        status: Optional[RecurringStatus] = None,
        business_id: Optional[int] = None,
    ) -> List[RecurringAppointment]:
        conditions = [RecurringAppointment.customer_id == customer_id]
        if status:
            conditions.append(RecurringAppointment.status == status.value)
        if business_id:
            conditions.append(RecurringAppointment.business_id == business_id)
        return await self._list(conditions)

    async def _list(self, conditions) -> List[RecurringAppointment]:
        result = await self.db.execute(
            select(RecurringAppointment)
            .where(and_(*conditions))
            .order_by(RecurringAppointment.start_date, RecurringAppointment.id)
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        series: RecurringAppointment,
        new_status: RecurringStatus,
        delete_future_appointments: bool = False,
        today: Optional[date] = None,
    ) -> RecurringAppointment:
        """Change a series status, optionally cancelling its upcoming occurrences."""
        current = series.status
        if not series.transition_to(new_status):
            raise InvalidStatusTransitionError(current, new_status.value)

        cancelled = []
        if new_status == RecurringStatus.CANCELLED and delete_future_appointments:
            cancelled = await self._cancel_future(series, today)

        await self.db.commit()
        await self._invalidate(series, cancelled)
        logger.info(
            f"Recurring series {series.uuid} moved from {current} to {series.status}, "
            f"{len(cancelled)} future appointments cancelled"
        )
        return await self.get_by_uuid(series.uuid)

    async def delete(
        self,
        series: RecurringAppointment,
        delete_future_appointments: bool = False,
        today: Optional[date] = None,
    ) -> int:
        """Soft-delete a series by cancelling it. Returns the cancelled occurrence count."""
        cancelled = []
        if series.status != RecurringStatus.CANCELLED.value:
            if not series.transition_to(RecurringStatus.CANCELLED):
                raise InvalidStatusTransitionError(
                    series.status, RecurringStatus.CANCELLED.value
                )
        if delete_future_appointments:
            cancelled = await self._cancel_future(series, today)

        await self.db.commit()
        await self._invalidate(series, cancelled)
        logger.info(
            f"Recurring series {series.uuid} deleted, "
            f"{len(cancelled)} future appointments cancelled"
        )
        return len(cancelled)

    async def _cancel_future(
        self, series: RecurringAppointment, today: Optional[date]
    ) -> list[date]:
        """Cancel every non-final child dated today or later in one UPDATE."""
        if today is None:
            today = await business_today(self.db, series.business_id)

        conditions = and_(
            Appointment.recurring_appointment_id == series.id,
            Appointment.date >= today,
            Appointment.status.notin_(FINAL_STATUSES),
        )
        dates = list(
            (await self.db.execute(select(Appointment.date).where(conditions))).scalars()
        )
        if dates:
            await self.db.execute(
                update(Appointment)
                .where(conditions)
                .values(
                    previous_status=Appointment.status,
                    status=AppointmentStatus.CANCELLED.value,
                    cancelled_at=func.now(),
                    status_changed_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
        return dates

    async def _invalidate(self, series: RecurringAppointment, dates: list[date]) -> None:
        for on_date in dates:
            await self.cache.invalidate_available_slots(
                series.service_id, on_date, series.staff_id
            )

    @staticmethod
    def preview(request: RecurrencePreviewRequest) -> RecurrencePreview:
        dates = expand(request.to_rule(), settings.MAX_RECURRENCE_OCCURRENCES)
        return RecurrencePreview(dates=dates, count=len(dates))
