import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from booking_engine.core.database import Base
from booking_engine.schemas.scheduling import AvailabilityWindow


class ServiceType(enum.Enum):
    APPOINTMENT = "appointment"
    PRODUCT = "product"
    IN_PERSON = "in_person"


class Service(Base):
    """Service with a duration and weekly bookable hours."""

    __tablename__ = "services"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Only appointment services carry meaningful duration and hours
    service_type = Column(
        String(20), nullable=False, default=ServiceType.APPOINTMENT.value
    )
    duration_minutes = Column(Integer, nullable=False, default=30)

    # Weekly availability
    available_days = Column(JSON, nullable=False, default=list)  # ["monday", ...]
    available_start_time = Column(String(5), nullable=False, default="09:00")
    available_end_time = Column(String(5), nullable=False, default="17:00")
    slot_step_minutes = Column(Integer, nullable=True)  # None -> settings default

    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_positive_duration"),
        CheckConstraint(
            "slot_step_minutes IS NULL OR slot_step_minutes > 0",
            name="check_positive_slot_step",
        ),
    )

    # Relationships
    business = relationship("Business", back_populates="services")

    @property
    def is_bookable(self) -> bool:
        return self.is_active and self.service_type == ServiceType.APPOINTMENT.value

    @property
    def availability(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            days=self.available_days or [],
            start_time=self.available_start_time,
            end_time=self.available_end_time,
        )

    def __repr__(self):
        return (
            f"<Service(id={self.id}, name='{self.name}', type={self.service_type}, "
            f"duration={self.duration_minutes}min)>"
        )
