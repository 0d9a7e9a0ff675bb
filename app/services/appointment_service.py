"""Appointment service - Reservation state machine.

pending -> booked -> checked_in -> fulfilled, with cancellation allowed from
any non-terminal state. Each transition commits exactly once so readers
never see a slot bound without the matching appointment state.
"""

import logging
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

import logfire
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import AppointmentNotFound, InvalidTransition, PaymentFailed, PaymentTimeout
from app.models.appointment import Appointment, AppointmentStatus
from app.schemas.appointment import AppointmentCreate
from app.services.payment_service import PaymentConfirmationBroker, payment_broker
from app.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)

PENDING = AppointmentStatus.PENDING.value
BOOKED = AppointmentStatus.BOOKED.value
CHECKED_IN = AppointmentStatus.CHECKED_IN.value
FULFILLED = AppointmentStatus.FULFILLED.value
CANCELLED = AppointmentStatus.CANCELLED.value

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({BOOKED, CANCELLED}),
    BOOKED: frozenset({CHECKED_IN, CANCELLED}),
    CHECKED_IN: frozenset({FULFILLED, CANCELLED}),
    FULFILLED: frozenset(),
    CANCELLED: frozenset(),
}

PaymentStatus = Literal["not_required", "confirmed", "failed", "timeout"]


@dataclass
class BookingResult:
    appointment: Appointment
    payment_status: PaymentStatus


def advance(appointment: Appointment, target: str) -> None:
    """Move an appointment to ``target`` or raise InvalidTransition."""
    if target not in ALLOWED_TRANSITIONS.get(appointment.status, frozenset()):
        raise InvalidTransition(f"Cannot move appointment from {appointment.status} to {target}")
    appointment.status = target
    appointment.step_count = (appointment.step_count or 0) + 1


class AppointmentService:
    """Service class for appointment operations."""

    def __init__(self, db: AsyncSession, broker: PaymentConfirmationBroker | None = None):
        self.db = db
        self.broker = broker or payment_broker
        self.store = ScheduleStore(db)

    async def create_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        """Create a new pending appointment."""
        appointment = Appointment(**appointment_data.model_dump(), status=PENDING)
        self.db.add(appointment)
        await self.db.flush()
        await self.db.refresh(appointment)
        return appointment

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        """Get an appointment by ID with fresh state, or raise AppointmentNotFound."""
        result = await self.db.execute(
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .execution_options(populate_existing=True)
        )
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")
        return appointment

    async def list_appointments(
        self,
        patient_id: str | None = None,
        practitioner_id: str | None = None,
        status: AppointmentStatus | None = None,
    ) -> list[Appointment]:
        query = select(Appointment)

        if patient_id:
            query = query.where(Appointment.patient_id == patient_id)
        if practitioner_id:
            query = query.where(Appointment.practitioner_id == practitioner_id)
        if status:
            query = query.where(Appointment.status == status.value)

        query = query.order_by(Appointment.created_at)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ==================== TRANSITIONS ====================

    async def book(
        self,
        appointment_id: UUID,
        slot_id: UUID,
        allow_overbook: bool = False,
        payment_required: bool = False,
        payment_reference: str | None = None,
        payment_timeout: float | None = None,
    ) -> BookingResult:
        """pending -> booked.

        Without payment, the bind and the state change commit together. With
        payment, the bind is committed as a hold, then we wait for the
        gateway; failure or timeout releases the hold and keeps the
        appointment pending.
        """
        appointment = await self.get_appointment(appointment_id)
        if BOOKED not in ALLOWED_TRANSITIONS[appointment.status]:
            raise InvalidTransition(f"Cannot book an appointment that is {appointment.status}")

        if not payment_required:
            try:
                await self.store.bind_appointment_to_slot(slot_id, appointment.id, allow_overbook)
                advance(appointment, BOOKED)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
            logfire.info("appointment_booked", appointment_id=str(appointment.id), slot_id=str(slot_id))
            return BookingResult(appointment, "not_required")

        reference = payment_reference or appointment.payment_reference or f"appointment-{appointment.id}"
        self.broker.register(reference)
        try:
            binding = await self.store.bind_appointment_to_slot(slot_id, appointment.id, allow_overbook)
            appointment.payment_reference = reference
            await self.db.commit()
        except Exception:
            self.broker.discard(reference)
            await self.db.rollback()
            raise
        logfire.info("slot_held_for_payment", appointment_id=str(appointment.id), slot_id=str(slot_id), reference=reference)

        timeout = settings.payment_timeout_seconds if payment_timeout is None else payment_timeout
        try:
            await self.broker.wait(reference, timeout)
        except (PaymentTimeout, PaymentFailed) as e:
            outcome: PaymentStatus = "timeout" if isinstance(e, PaymentTimeout) else "failed"
            logger.warning("Payment %s for appointment %s: %s", reference, appointment.id, e.detail)
            appointment = await self._roll_back_hold(appointment.id, binding)
            logfire.info("payment_rolled_back", appointment_id=str(appointment.id), outcome=outcome)
            return BookingResult(appointment, outcome)

        appointment = await self.get_appointment(appointment.id)
        if appointment.status != PENDING or appointment.slot_id != slot_id:
            # Cancelled while we were waiting; nothing left to confirm
            return BookingResult(appointment, "failed")

        advance(appointment, BOOKED)
        await self.db.commit()
        logfire.info("appointment_booked", appointment_id=str(appointment.id), slot_id=str(slot_id), reference=reference)
        return BookingResult(appointment, "confirmed")

    async def _roll_back_hold(self, appointment_id: UUID, binding) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        if appointment.status == PENDING and appointment.slot_id == binding.slot.id:
            try:
                await self.store.release_binding(binding.slot.id, appointment, restore=binding)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        return appointment

    async def check_in(self, appointment_id: UUID) -> Appointment:
        """booked -> checked_in (front desk)."""
        appointment = await self.get_appointment(appointment_id)
        if appointment.slot_id is None:
            raise InvalidTransition("Appointment has no bound slot")
        advance(appointment, CHECKED_IN)
        await self.db.commit()
        logfire.info("appointment_checked_in", appointment_id=str(appointment.id))
        return appointment

    async def fulfill(self, appointment_id: UUID) -> Appointment:
        """checked_in -> fulfilled (encounter completed)."""
        appointment = await self.get_appointment(appointment_id)
        advance(appointment, FULFILLED)
        await self.db.commit()
        logfire.info("appointment_fulfilled", appointment_id=str(appointment.id))
        return appointment

    async def cancel(self, appointment_id: UUID) -> Appointment:
        """Cancel from any non-terminal state and release the slot binding."""
        appointment = await self.get_appointment(appointment_id)
        if CANCELLED not in ALLOWED_TRANSITIONS[appointment.status]:
            raise InvalidTransition(f"Appointment is already {appointment.status}")

        try:
            if appointment.slot_id is not None:
                await self.store.release_binding(appointment.slot_id, appointment)
            advance(appointment, CANCELLED)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        # Wake a booking still waiting on this payment, after our commit
        if appointment.payment_reference and self.broker.is_pending(appointment.payment_reference):
            self.broker.resolve(appointment.payment_reference, success=False)

        logfire.info("appointment_cancelled", appointment_id=str(appointment.id))
        return appointment
