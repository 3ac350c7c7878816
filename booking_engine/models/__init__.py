# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    business,
    recurring_appointment,
    service,
    staff,
    staff_unavailability,
)

__all__ = [
    "appointment",
    "business",
    "recurring_appointment",
    "service",
    "staff",
    "staff_unavailability",
]
