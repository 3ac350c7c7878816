import uuid
from datetime import date

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from booking_engine.core.database import Base


class StaffUnavailability(Base):
    """Inclusive date range on which a staff member takes no bookings."""

    __tablename__ = "staff_unavailability"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    staff = relationship("Staff", back_populates="unavailabilities")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="check_unavailability_range"),
        Index("ix_staff_unavailability_dates", "staff_id", "start_date", "end_date"),
    )

    def covers(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    def __repr__(self):
        return (
            f"<StaffUnavailability(staff_id={self.staff_id}, "
            f"{self.start_date} - {self.end_date})>"
        )
