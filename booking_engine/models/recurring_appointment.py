import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from booking_engine.core.database import Base


class RecurringStatus(enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS = {
    RecurringStatus.ACTIVE: [
        RecurringStatus.PAUSED,
        RecurringStatus.COMPLETED,
        RecurringStatus.CANCELLED,
    ],
    RecurringStatus.PAUSED: [
        RecurringStatus.ACTIVE,
        RecurringStatus.COMPLETED,
        RecurringStatus.CANCELLED,
    ],
    RecurringStatus.COMPLETED: [],  # Final state
    RecurringStatus.CANCELLED: [],  # Final state
}


class RecurringAppointment(Base):
    """Recurrence rule plus the appointments booked from it."""

    __tablename__ = "recurring_appointments"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)

    # Participants
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    customer_id = Column(String(255), nullable=False, index=True)

    # Rule
    recurrence_pattern = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    occurrences = Column(Integer, nullable=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    status = Column(
        String(20), nullable=False, default=RecurringStatus.ACTIVE.value, index=True
    )
    status_changed_at = Column(DateTime(timezone=True), server_default=func.now())
    notes = Column(Text, nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_series_end_after_start"),
        CheckConstraint(
            "(end_date IS NULL) != (occurrences IS NULL)",
            name="check_single_termination",
        ),
    )

    # Relationships
    service = relationship("Service")
    staff = relationship("Staff")
    appointments = relationship(
        "Appointment",
        back_populates="recurring_appointment",
        order_by="Appointment.date",
    )

    def can_transition_to(self, new_status: RecurringStatus) -> bool:
        current = RecurringStatus(self.status)
        return new_status in ALLOWED_TRANSITIONS.get(current, [])

    def transition_to(self, new_status: RecurringStatus) -> bool:
        if not self.can_transition_to(new_status):
            return False
        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)
        return True

    def __repr__(self):
        return (
            f"<RecurringAppointment(id={self.id}, pattern={self.recurrence_pattern}, "
            f"start={self.start_date}, status='{self.status}')>"
        )
