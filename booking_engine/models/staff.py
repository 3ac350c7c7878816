import uuid
from typing import Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from booking_engine.core.database import Base
from booking_engine.schemas.scheduling import AvailabilityWindow


class Staff(Base):
    """Staff member with an optional personal weekly schedule."""

    __tablename__ = "staff"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    position = Column(String, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Personal weekly schedule; unset means the service hours apply
    available_days = Column(JSON, nullable=True)
    available_start_time = Column(String(5), nullable=True)
    available_end_time = Column(String(5), nullable=True)
    break_start_time = Column(String(5), nullable=True)
    break_end_time = Column(String(5), nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    business = relationship("Business", back_populates="staff")
    unavailabilities = relationship(
        "StaffUnavailability", back_populates="staff", cascade="all, delete-orphan"
    )

    @property
    def has_schedule(self) -> bool:
        return bool(self.available_start_time and self.available_end_time)

    @property
    def availability(self) -> Optional[AvailabilityWindow]:
        if not self.has_schedule:
            return None
        return AvailabilityWindow(
            days=self.available_days or [],
            start_time=self.available_start_time,
            end_time=self.available_end_time,
            break_start_time=self.break_start_time,
            break_end_time=self.break_end_time,
        )

    def __repr__(self):
        return f"<Staff(id={self.id}, name='{self.name}', active={self.is_active})>"
