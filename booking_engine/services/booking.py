"""Atomic booking of single appointments and whole recurring series.

A booking request moves through the stages validating, resolving,
conflict_checking and committing, ending as committed, rejected or (for a
series) partially_failed. Every transition is logged. Nothing is written
unless every stage succeeds for every requested date.
"""

from datetime import date
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking_engine.core.config import settings
from booking_engine.core.exceptions import (
    BookingError,
    InvalidInputError,
    OutOfWindowError,
    SeriesRejectedError,
    SlotTakenError,
)
from booking_engine.core.redis import RedisClient, redis_client
from booking_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    build_slot_key,
)
from booking_engine.models.recurring_appointment import (
    RecurringAppointment,
    RecurringStatus,
)
from booking_engine.models.service import Service
from booking_engine.models.staff import Staff
from booking_engine.scheduling.conflicts import SlotCandidate, find_conflicts
from booking_engine.scheduling.recurrence import expand
from booking_engine.scheduling.resolver import effective_windows, resolve_for
from booking_engine.scheduling.time_window import (
    TimeRange,
    contains,
    format_time,
    parse_time,
)
from booking_engine.schemas.appointment import AppointmentCreate, AppointmentUpdate
from booking_engine.schemas.recurring_appointment import RecurringAppointmentCreate
from booking_engine.services.availability import (
    business_today,
    is_staff_unavailable,
    load_day_appointments,
)

logger = structlog.get_logger(__name__)


class BookingStage(str, Enum):
    VALIDATING = "validating"
    RESOLVING = "resolving"
    CONFLICT_CHECKING = "conflict_checking"
    COMMITTING = "committing"
    COMMITTED = "committed"
    PARTIALLY_FAILED = "partially_failed"
    REJECTED = "rejected"


class BookingOrchestrator:
    """Validates, resolves, conflict-checks and persists bookings in one transaction."""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[RedisClient] = None,
        default_step_minutes: Optional[int] = None,
        max_occurrences: Optional[int] = None,
    ):
        self.db = db
        self.cache = cache if cache is not None else redis_client
        self.default_step_minutes = default_step_minutes or settings.SLOT_STEP_MINUTES
        self.max_occurrences = max_occurrences or settings.MAX_RECURRENCE_OCCURRENCES
        self.stage = BookingStage.VALIDATING
        self.log = logger

    def _enter(self, stage: BookingStage, **fields) -> None:
        self.stage = stage
        self.log.info("booking_stage", stage=stage.value, **fields)

    async def _reject(self, error: BookingError) -> None:
        if error.stage is None:
            error.stage = self.stage.value
        await self.db.rollback()
        final = (
            BookingStage.PARTIALLY_FAILED
            if isinstance(error, SeriesRejectedError)
            else BookingStage.REJECTED
        )
        self._enter(final, reason=error.reason.value, error=error.message)

    # Single appointments

    async def book_appointment(
        self, request: AppointmentCreate, today: Optional[date] = None
    ) -> Appointment:
        """Book one appointment or raise a ``BookingError`` with nothing written."""
        self.log = logger.bind(
            service_id=request.service_id,
            staff_id=request.staff_id,
            date=request.date.isoformat(),
            start_time=request.start_time,
        )
        try:
            self._enter(BookingStage.VALIDATING)
            service, staff = await self._load_participants(
                request.service_id, request.staff_id, request.business_id
            )
            requested = self._requested_range(service, request.start_time, request.end_time)
            if today is None:
                today = await business_today(self.db, service.business_id)
            self._check_not_past(request.date, today)

            self._enter(BookingStage.RESOLVING)
            await self._check_in_window(service, staff, request.date, requested)

            self._enter(BookingStage.CONFLICT_CHECKING)
            await self._check_free(service, staff, request.date, requested)

            self._enter(BookingStage.COMMITTING)
            appointment = self._new_appointment(
                service, staff, request.customer_id, request.date, requested, request.notes
            )
            self.db.add(appointment)
            await self._commit()
        except BookingError as error:
            await self._reject(error)
            raise

        await self.db.refresh(appointment)
        await self.cache.invalidate_available_slots(
            service.id, appointment.date, appointment.staff_id
        )
        self._enter(BookingStage.COMMITTED, appointment_uuid=str(appointment.uuid))
        return appointment

    # Recurring series

    async def book_recurring(
        self, request: RecurringAppointmentCreate, today: Optional[date] = None
    ) -> RecurringAppointment:
        """Book a series and every occurrence, or nothing at all.

        Rule errors surface before any database work. Occurrence failures are
        collected across the whole series and reported together through
        ``SeriesRejectedError``.
        """
        self.log = logger.bind(
            service_id=request.service_id,
            staff_id=request.staff_id,
            pattern=request.recurrence_pattern.value,
            start_date=request.start_date.isoformat(),
        )
        try:
            self._enter(BookingStage.VALIDATING)
            dates = expand(request.to_rule(), self.max_occurrences)
            service, staff = await self._load_participants(
                request.service_id, request.staff_id, request.business_id
            )
            requested = self._requested_range(service, request.start_time, request.end_time)
            if today is None:
                today = await business_today(self.db, service.business_id)

            self._enter(BookingStage.RESOLVING, occurrences=len(dates))
            failures: dict[date, BookingError] = {}
            for occurrence in dates:
                try:
                    self._check_not_past(occurrence, today)
                    await self._check_in_window(service, staff, occurrence, requested)
                except BookingError as error:
                    error.stage = BookingStage.RESOLVING.value
                    failures[occurrence] = error

            self._enter(BookingStage.CONFLICT_CHECKING)
            for occurrence in dates:
                if occurrence in failures:
                    continue
                try:
                    await self._check_free(service, staff, occurrence, requested)
                except BookingError as error:
                    error.stage = BookingStage.CONFLICT_CHECKING.value
                    failures[occurrence] = error

            if failures:
                raise SeriesRejectedError(sorted(failures.items()))

            self._enter(BookingStage.COMMITTING)
            series = RecurringAppointment(
                business_id=service.business_id,
                service_id=service.id,
                staff_id=staff.id if staff is not None else None,
                customer_id=request.customer_id,
                recurrence_pattern=request.recurrence_pattern.value,
                start_date=request.start_date,
                end_date=request.end_date,
                occurrences=request.occurrences,
                start_time=format_time(requested[0]),
                end_time=format_time(requested[1]),
                status=RecurringStatus.ACTIVE.value,
                notes=request.notes,
            )
            self.db.add(series)
            await self._flush()
            for occurrence in dates:
                appointment = self._new_appointment(
                    service, staff, request.customer_id, occurrence, requested, request.notes
                )
                appointment.recurring_appointment_id = series.id
                self.db.add(appointment)
            await self._commit()
        except BookingError as error:
            await self._reject(error)
            raise

        for occurrence in dates:
            await self.cache.invalidate_available_slots(
                service.id, occurrence, series.staff_id
            )
        self._enter(
            BookingStage.COMMITTED,
            series_uuid=str(series.uuid),
            occurrences=len(dates),
        )
        return await self._reload_series(series.id)

    # Changes to booked appointments

    async def reschedule_appointment(
        self,
        appointment: Appointment,
        changes: AppointmentUpdate,
        today: Optional[date] = None,
    ) -> Appointment:
        """Move an appointment to another date, time or staff member.

        The new placement is resolved and conflict-checked like a fresh
        booking, ignoring the appointment's own current slot. A change that
        only touches ``notes`` is saved without re-checking.
        """
        fields = changes.model_dump(exclude_unset=True)
        if "notes" in fields:
            appointment.notes = changes.notes
        if not fields.keys() & {"date", "start_time", "end_time", "staff_id"}:
            await self.db.commit()
            await self.db.refresh(appointment)
            return appointment

        if changes.start_time is None and changes.end_time is None:
            start_time, end_time = appointment.start_time, appointment.end_time
        else:
            start_time = changes.start_time or appointment.start_time
            end_time = changes.end_time
        return await self._move(
            appointment,
            fields["staff_id"] if "staff_id" in fields else appointment.staff_id,
            changes.date or appointment.date,
            start_time,
            end_time,
            today,
        )

    async def assign_staff(
        self, appointment: Appointment, staff_id: int, today: Optional[date] = None
    ) -> Appointment:
        """Give an appointment to a staff member, keeping its date and time."""
        return await self._move(
            appointment,
            staff_id,
            appointment.date,
            appointment.start_time,
            appointment.end_time,
            today,
        )

    async def _move(
        self,
        appointment: Appointment,
        staff_id: Optional[int],
        on_date: date,
        start_time: str,
        end_time: Optional[str],
        today: Optional[date],
    ) -> Appointment:
        appointment_id = appointment.id
        previous = (appointment.service_id, appointment.date, appointment.staff_id)
        self.log = logger.bind(
            appointment_id=appointment_id,
            staff_id=staff_id,
            date=on_date.isoformat(),
            start_time=start_time,
        )
        try:
            self._enter(BookingStage.VALIDATING)
            if appointment.is_final:
                raise InvalidInputError(
                    f"Cannot change an appointment that is {appointment.status}"
                )
            service, staff = await self._load_participants(
                appointment.service_id, staff_id, appointment.business_id
            )
            requested = self._requested_range(service, start_time, end_time)
            if today is None:
                today = await business_today(self.db, service.business_id)
            self._check_not_past(on_date, today)

            self._enter(BookingStage.RESOLVING)
            await self._check_in_window(service, staff, on_date, requested)

            self._enter(BookingStage.CONFLICT_CHECKING)
            await self._check_free(
                service, staff, on_date, requested, ignore_id=appointment_id
            )

            self._enter(BookingStage.COMMITTING)
            appointment.staff_id = staff_id
            appointment.date = on_date
            appointment.start_time = format_time(requested[0])
            appointment.end_time = format_time(requested[1])
            appointment.slot_key = build_slot_key(service.id, staff_id)
            await self._commit()
        except BookingError as error:
            await self._reject(error)
            raise

        await self.db.refresh(appointment)
        await self.cache.invalidate_available_slots(*previous)
        await self.cache.invalidate_available_slots(
            service.id, appointment.date, appointment.staff_id
        )
        self._enter(BookingStage.COMMITTED, appointment_uuid=str(appointment.uuid))
        return appointment

    # Stages

    async def _load_participants(
        self, service_id: int, staff_id: Optional[int], business_id: Optional[int]
    ) -> tuple[Service, Optional[Staff]]:
        service = await self.db.scalar(select(Service).where(Service.id == service_id))
        if service is None:
            raise InvalidInputError(f"Service {service_id} not found")
        if business_id is not None and service.business_id != business_id:
            raise InvalidInputError("Service does not belong to this business")
        if not service.is_active:
            raise InvalidInputError("Service is not active")
        if not service.is_bookable:
            raise InvalidInputError("Only appointment services can be booked")
        if service.duration_minutes is None or service.duration_minutes <= 0:
            raise InvalidInputError("Service duration must be positive")

        staff = None
        if staff_id is not None:
            staff = await self.db.scalar(select(Staff).where(Staff.id == staff_id))
            if staff is None:
                raise InvalidInputError(f"Staff member {staff_id} not found")
            if staff.business_id != service.business_id:
                raise InvalidInputError("Staff member does not belong to this business")
            if not staff.is_active:
                raise InvalidInputError("Staff member is not active")
        return service, staff

    @staticmethod
    def _requested_range(
        service: Service, start_time: str, end_time: Optional[str]
    ) -> TimeRange:
        start = parse_time(start_time)
        if end_time is None:
            end = start + service.duration_minutes
            if end > 24 * 60:
                raise InvalidInputError("Appointment cannot extend past midnight")
        else:
            end = parse_time(end_time)
        if end <= start:
            raise InvalidInputError("End time must be after start time")
        return start, end

    @staticmethod
    def _check_not_past(on_date: date, today: date) -> None:
        if on_date < today:
            raise InvalidInputError(f"Cannot book appointments in the past ({on_date})")

    async def _check_in_window(
        self,
        service: Service,
        staff: Optional[Staff],
        on_date: date,
        requested: TimeRange,
    ) -> None:
        if staff is not None and await is_staff_unavailable(self.db, staff.id, on_date):
            raise OutOfWindowError(f"Staff member is unavailable on {on_date}")

        slots = resolve_for(service, staff, on_date, self.default_step_minutes)
        start, end = format_time(requested[0]), format_time(requested[1])

        if requested[1] - requested[0] == service.duration_minutes:
            if any(s.start_time == start and s.end_time == end for s in slots):
                return
        elif any(s.start_time == start for s in slots):
            # Manual end time: must still start on a slot and stay inside one window
            windows = effective_windows(
                on_date,
                service.availability,
                staff.availability if staff is not None else None,
            )
            if any(contains(window, requested) for window in windows):
                return
        raise OutOfWindowError(f"{start}-{end} on {on_date} is outside available hours")

    async def _check_free(
        self,
        service: Service,
        staff: Optional[Staff],
        on_date: date,
        requested: TimeRange,
        ignore_id: Optional[int] = None,
    ) -> None:
        staff_id = staff.id if staff is not None else None
        # Lock order: service key, then staff key
        await self._lock_slot(build_slot_key(service.id), on_date)
        if staff_id is not None:
            await self._lock_slot(build_slot_key(service.id, staff_id), on_date)
        existing = [
            appointment
            for appointment in await load_day_appointments(
                self.db, on_date, service.id, staff_id
            )
            if appointment.id != ignore_id
        ]
        candidate = SlotCandidate(
            service_id=service.id,
            staff_id=staff_id,
            start_time=format_time(requested[0]),
            end_time=format_time(requested[1]),
        )
        conflicts = find_conflicts(candidate, on_date, existing)
        if conflicts:
            taken = conflicts[0]
            raise SlotTakenError(
                f"{candidate.start_time}-{candidate.end_time} on {on_date} overlaps "
                f"an existing booking at {taken.start_time}-{taken.end_time}"
            )

    async def _lock_slot(self, slot_key: str, on_date: date) -> None:
        """Serialise writers for one slot key and date until the transaction ends."""
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(f"{slot_key}:{on_date}")))
        )

    def _new_appointment(
        self,
        service: Service,
        staff: Optional[Staff],
        customer_id: str,
        on_date: date,
        requested: TimeRange,
        notes: Optional[str],
    ) -> Appointment:
        staff_id = staff.id if staff is not None else None
        return Appointment(
            business_id=service.business_id,
            service_id=service.id,
            staff_id=staff_id,
            customer_id=customer_id,
            date=on_date,
            start_time=format_time(requested[0]),
            end_time=format_time(requested[1]),
            slot_key=build_slot_key(service.id, staff_id),
            status=AppointmentStatus.PENDING.value,
            notes=notes,
        )

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise SlotTakenError("The requested slot was booked concurrently") from e

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            raise SlotTakenError("The requested slot was booked concurrently") from e

    async def _reload_series(self, series_id: int) -> RecurringAppointment:
        result = await self.db.execute(
            select(RecurringAppointment)
            .options(selectinload(RecurringAppointment.appointments))
            .where(RecurringAppointment.id == series_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
