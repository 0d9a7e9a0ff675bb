from fastapi import APIRouter
from app.api.routes import (
    schedules,
    slots,
    appointments,
    appointment_management,
    recommendations,
    payments,
)

api_router = APIRouter()

api_router.include_router(schedules.router, prefix="/schedules", tags=["Schedules"])
api_router.include_router(slots.router, prefix="/slots", tags=["Slots"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(
    appointment_management.router, prefix="/appointment-management", tags=["Appointment Management"]
)
api_router.include_router(recommendations.router, prefix="/recommendations", tags=["Recommendations"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
