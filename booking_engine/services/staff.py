import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.redis import RedisClient, redis_client
from booking_engine.models.staff import Staff
from booking_engine.models.staff_unavailability import StaffUnavailability
from booking_engine.schemas.scheduling import StaffAvailabilityUpdate
from booking_engine.schemas.staff import StaffUnavailableCreate

logger = logging.getLogger(__name__)


class StaffService:
    """Staff weekly schedules and unavailable date ranges."""

    def __init__(self, db: AsyncSession, cache: Optional[RedisClient] = None):
        self.db = db
        self.cache = cache if cache is not None else redis_client

    async def get_staff(self, staff_id: int) -> Optional[Staff]:
        result = await self.db.execute(select(Staff).where(Staff.id == staff_id))
        return result.scalar_one_or_none()

    async def update_availability(
        self, staff: Staff, availability: StaffAvailabilityUpdate
    ) -> Staff:
        staff.available_days = [day.value for day in availability.days]
        staff.available_start_time = availability.start_time
        staff.available_end_time = availability.end_time
        staff.break_start_time = availability.break_start_time
        staff.break_end_time = availability.break_end_time

        await self.db.commit()
        await self.db.refresh(staff)
        await self.cache.invalidate_staff_slots(staff.id)

        logger.info(
            f"Updated availability for staff {staff.id}: "
            f"{availability.start_time}-{availability.end_time}"
        )
        return staff

    async def add_unavailable_dates(
        self, staff: Staff, unavailable: StaffUnavailableCreate
    ) -> StaffUnavailability:
        record = StaffUnavailability(
            staff_id=staff.id,
            start_date=unavailable.start_date,
            end_date=unavailable.end_date,
            reason=unavailable.reason,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        await self.cache.invalidate_staff_slots(staff.id)

        logger.info(
            f"Staff {staff.id} unavailable {record.start_date} - {record.end_date}"
        )
        return record

    async def list_unavailable_dates(self, staff_id: int) -> List[StaffUnavailability]:
        result = await self.db.execute(
            select(StaffUnavailability)
            .where(StaffUnavailability.staff_id == staff_id)
            .order_by(StaffUnavailability.start_date)
        )
        return list(result.scalars().all())
