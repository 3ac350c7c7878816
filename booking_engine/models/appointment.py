import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from booking_engine.core.database import Base


class AppointmentStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: [AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED],
    AppointmentStatus.CONFIRMED: [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED],
    AppointmentStatus.COMPLETED: [],  # Final state
    AppointmentStatus.CANCELLED: [],  # Final state
}

FINAL_STATUSES = [AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value]

ACTIVE_SLOT_CONDITION = text("status != 'cancelled'")


def build_slot_key(service_id: int, staff_id: Optional[int] = None) -> str:
    """Resource an appointment occupies: its staff member, else its service."""
    if staff_id is not None:
        return f"staff:{staff_id}"
    return f"service:{service_id}"


class Appointment(Base):
    """Single booked slot, standalone or one occurrence of a recurring series."""

    __tablename__ = "appointments"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)

    # Participants
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    customer_id = Column(String(255), nullable=False, index=True)
    recurring_appointment_id = Column(
        Integer, ForeignKey("recurring_appointments.id"), nullable=True
    )

    # Scheduling details ("HH:MM", zero padded so text order is time order)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    slot_key = Column(String(50), nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True
    )
    previous_status = Column(String(20), nullable=True)
    status_changed_at = Column(DateTime(timezone=True), server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_end_after_start"),
        Index("ix_appointments_slot_date", "slot_key", "date"),
        Index(
            "uq_appointments_active_slot",
            "slot_key",
            "date",
            "start_time",
            unique=True,
            postgresql_where=ACTIVE_SLOT_CONDITION,
            sqlite_where=ACTIVE_SLOT_CONDITION,
        ),
    )

    # Relationships
    business = relationship("Business")
    service = relationship("Service")
    staff = relationship("Staff")
    recurring_appointment = relationship(
        "RecurringAppointment", back_populates="appointments"
    )

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        """Check if appointment can transition to the new status."""
        current = AppointmentStatus(self.status)
        return new_status in ALLOWED_TRANSITIONS.get(current, [])

    def transition_to(self, new_status: AppointmentStatus) -> bool:
        """Transition appointment to new status with validation."""
        if not self.can_transition_to(new_status):
            return False

        now = datetime.now(timezone.utc)
        self.previous_status = self.status
        self.status = new_status.value
        self.status_changed_at = now
        if new_status == AppointmentStatus.CANCELLED:
            self.cancelled_at = now
        return True

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"date='{self.date}', {self.start_time}-{self.end_time}, "
            f"slot_key={self.slot_key})>"
        )
