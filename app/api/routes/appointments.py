"""Appointment routes - API endpoints for appointment operations."""

from uuid import UUID

from fastapi import APIRouter

from app.api.deps import DBSession, PaymentBroker
from app.models.appointment import AppointmentStatus
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    BookingOutcome,
    BookRequest,
)
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.post("/", response_model=AppointmentResponse, status_code=201)
async def create_appointment(appointment_data: AppointmentCreate, db: DBSession):
    """Create a new pending appointment."""
    service = AppointmentService(db)
    return await service.create_appointment(appointment_data)


@router.get("/", response_model=list[AppointmentResponse])
async def list_appointments(
    db: DBSession,
    patient_id: str | None = None,
    practitioner_id: str | None = None,
    status: AppointmentStatus | None = None,
):
    """List appointments, optionally filtered."""
    service = AppointmentService(db)
    return await service.list_appointments(patient_id, practitioner_id, status)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: UUID, db: DBSession):
    """Get an appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id)


@router.post("/{appointment_id}/book", response_model=BookingOutcome)
async def book_appointment(appointment_id: UUID, request: BookRequest, db: DBSession, broker: PaymentBroker):
    """Reserve a slot for a pending appointment.

    With ``payment_required`` the request stays open until the gateway
    confirms, fails, or the timeout elapses.
    """
    service = AppointmentService(db, broker)
    result = await service.book(
        appointment_id,
        request.slot_id,
        allow_overbook=request.allow_overbook,
        payment_required=request.payment_required,
        payment_reference=request.payment_reference,
        payment_timeout=request.payment_timeout,
    )
    return BookingOutcome(
        appointment=AppointmentResponse.model_validate(result.appointment),
        payment_status=result.payment_status,
    )


@router.post("/{appointment_id}/check-in", response_model=AppointmentResponse)
async def check_in_appointment(appointment_id: UUID, db: DBSession):
    service = AppointmentService(db)
    return await service.check_in(appointment_id)


@router.post("/{appointment_id}/fulfill", response_model=AppointmentResponse)
async def fulfill_appointment(appointment_id: UUID, db: DBSession):
    service = AppointmentService(db)
    return await service.fulfill(appointment_id)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(appointment_id: UUID, db: DBSession, broker: PaymentBroker):
    """Cancel an appointment and release its slot."""
    service = AppointmentService(db, broker)
    return await service.cancel(appointment_id)
