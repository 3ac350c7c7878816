from fastapi import APIRouter

from booking_engine.api.v1.endpoints import (
    appointments,
    recurring_appointments,
    staff,
)

api_router = APIRouter()

# Appointment booking and availability endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)

# Recurring series endpoints
api_router.include_router(
    recurring_appointments.router,
    prefix="/recurring-appointments",
    tags=["recurring-appointments"],
)

# Staff schedule endpoints
api_router.include_router(staff.router, prefix="/staff", tags=["staff"])
