"""Tests for the appointment state machine and payment-gated booking."""

import asyncio
import uuid

import pytest

from app.exceptions import AppointmentNotFound, InvalidTransition, SlotUnavailable
from app.models.appointment import AppointmentStatus
from app.models.schedule import SlotStatus
from app.schemas.appointment import AppointmentCreate
from app.services.appointment_service import AppointmentService
from app.services.payment_service import PaymentConfirmationBroker
from app.services.schedule_store import ScheduleStore

from tests.conftest import wait_until_pending


class TestLifecycle:
    """Allowed and refused transitions."""

    @pytest.mark.asyncio
    async def test_create_is_pending(self, db_session):
        service = AppointmentService(db_session)
        appointment = await service.create_appointment(
            AppointmentCreate(patient_id="patient-1", practitioner_id="dr-smith")
        )
        await db_session.commit()

        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.step_count == 1
        assert appointment.slot_id is None

    @pytest.mark.asyncio
    async def test_full_happy_path(self, db_session, schedule, make_appointment):
        """pending -> booked -> checked_in -> fulfilled."""
        appointment = await make_appointment()
        service = AppointmentService(db_session)
        slot_id = schedule.slots[0].id

        result = await service.book(appointment.id, slot_id)
        assert result.payment_status == "not_required"
        assert result.appointment.status == AppointmentStatus.BOOKED.value
        assert result.appointment.slot_id == slot_id

        checked_in = await service.check_in(appointment.id)
        assert checked_in.status == AppointmentStatus.CHECKED_IN.value

        fulfilled = await service.fulfill(appointment.id)
        assert fulfilled.status == AppointmentStatus.FULFILLED.value
        assert fulfilled.step_count == 4

    @pytest.mark.asyncio
    async def test_fulfill_requires_check_in(self, db_session, schedule, make_appointment):
        appointment = await make_appointment()
        service = AppointmentService(db_session)
        await service.book(appointment.id, schedule.slots[0].id)

        with pytest.raises(InvalidTransition):
            await service.fulfill(appointment.id)

    @pytest.mark.asyncio
    async def test_check_in_requires_booking(self, db_session, make_appointment):
        appointment = await make_appointment()
        with pytest.raises(InvalidTransition):
            await AppointmentService(db_session).check_in(appointment.id)

    @pytest.mark.asyncio
    async def test_cancelled_is_terminal(self, db_session, make_appointment):
        appointment = await make_appointment()
        service = AppointmentService(db_session)
        await service.cancel(appointment.id)

        with pytest.raises(InvalidTransition):
            await service.cancel(appointment.id)

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, db_session):
        with pytest.raises(AppointmentNotFound):
            await AppointmentService(db_session).get_appointment(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_filters(self, db_session, make_appointment):
        await make_appointment("patient-1")
        await make_appointment("patient-2")
        service = AppointmentService(db_session)

        result = await service.list_appointments(patient_id="patient-2")
        assert [a.patient_id for a in result] == ["patient-2"]

        pending = await service.list_appointments(status=AppointmentStatus.PENDING)
        assert len(pending) == 2


class TestBooking:
    """Slot side of booking and cancelling."""

    @pytest.mark.asyncio
    async def test_booked_slot_refuses_second_booking(self, db_session, schedule, make_appointment):
        first = await make_appointment("patient-1")
        second = await make_appointment("patient-2")
        slot_id = schedule.slots[0].id
        second_id = second.id
        service = AppointmentService(db_session)
        await service.book(first.id, slot_id)

        with pytest.raises(SlotUnavailable):
            await service.book(second_id, slot_id)

        reloaded = await service.get_appointment(second_id)
        assert reloaded.status == AppointmentStatus.PENDING.value
        assert reloaded.slot_id is None

    @pytest.mark.asyncio
    async def test_cancel_frees_slot(self, db_session, schedule, make_appointment):
        appointment = await make_appointment()
        service = AppointmentService(db_session)
        slot_id = schedule.slots[0].id
        await service.book(appointment.id, slot_id)

        cancelled = await service.cancel(appointment.id)

        assert cancelled.status == AppointmentStatus.CANCELLED.value
        assert cancelled.slot_id is None
        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.FREE.value
        assert slot.appointments == []

    @pytest.mark.asyncio
    async def test_cancel_overbooked_keeps_slot_booked(self, db_session, schedule, make_appointment):
        first = await make_appointment("patient-1")
        second = await make_appointment("patient-2")
        service = AppointmentService(db_session)
        slot_id = schedule.slots[0].id
        await service.book(first.id, slot_id)
        await service.book(second.id, slot_id, allow_overbook=True)

        await service.cancel(first.id)

        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.BOOKED.value
        assert slot.overbooked is False
        assert [a.id for a in slot.appointments] == [second.id]


class TestPaymentGatedBooking:
    """Booking that waits on a payment signal."""

    @pytest.mark.asyncio
    async def test_confirmed_payment_books(self, db_session, schedule, make_appointment, broker):
        appointment = await make_appointment()
        service = AppointmentService(db_session, broker)
        slot_id = schedule.slots[0].id

        task = asyncio.create_task(
            service.book(appointment.id, slot_id, payment_required=True, payment_reference="order-1", payment_timeout=5)
        )
        await wait_until_pending(broker, "order-1")
        assert broker.resolve("order-1", success=True, payment_id="pay-1") is True
        result = await task

        assert result.payment_status == "confirmed"
        assert result.appointment.status == AppointmentStatus.BOOKED.value
        assert result.appointment.payment_reference == "order-1"
        assert not broker.is_pending("order-1")

    @pytest.mark.asyncio
    async def test_failed_payment_releases_hold(self, db_session, schedule, make_appointment, broker):
        appointment = await make_appointment()
        service = AppointmentService(db_session, broker)
        slot_id = schedule.slots[0].id

        task = asyncio.create_task(
            service.book(appointment.id, slot_id, payment_required=True, payment_reference="order-2", payment_timeout=5)
        )
        await wait_until_pending(broker, "order-2")
        broker.resolve("order-2", success=False)
        result = await task

        assert result.payment_status == "failed"
        assert result.appointment.status == AppointmentStatus.PENDING.value
        assert result.appointment.slot_id is None
        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.FREE.value

    @pytest.mark.asyncio
    async def test_timeout_restores_overbooked_slot(self, db_session, schedule, make_appointment, broker):
        """A lapsed payment puts the slot back exactly as it was."""
        holder = await make_appointment("patient-1")
        latecomer = await make_appointment("patient-2")
        service = AppointmentService(db_session, broker)
        slot_id = schedule.slots[0].id
        await service.book(holder.id, slot_id)

        result = await service.book(
            latecomer.id, slot_id, allow_overbook=True, payment_required=True, payment_timeout=0.05
        )

        assert result.payment_status == "timeout"
        assert result.appointment.status == AppointmentStatus.PENDING.value
        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.BOOKED.value
        assert slot.overbooked is False
        assert [a.id for a in slot.appointments] == [holder.id]

    @pytest.mark.asyncio
    async def test_default_reference(self, db_session, schedule, make_appointment, broker):
        appointment = await make_appointment()
        service = AppointmentService(db_session, broker)

        result = await service.book(
            appointment.id, schedule.slots[0].id, payment_required=True, payment_timeout=0.05
        )

        assert result.appointment.payment_reference == f"appointment-{appointment.id}"

    @pytest.mark.asyncio
    async def test_zero_timeout_is_not_replaced_by_default(self, db_session, schedule, make_appointment, broker):
        appointment = await make_appointment()
        service = AppointmentService(db_session, broker)
        slot_id = schedule.slots[0].id

        result = await asyncio.wait_for(
            service.book(appointment.id, slot_id, payment_required=True, payment_timeout=0), timeout=2
        )

        assert result.payment_status == "timeout"
        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.FREE.value

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_fails_booking(
        self, db_session, session_factory, schedule, make_appointment, broker
    ):
        """Cancelling frees the slot and wakes the waiting booking."""
        appointment = await make_appointment()
        appointment_id, slot_id = appointment.id, schedule.slots[0].id
        task = asyncio.create_task(
            AppointmentService(db_session, broker).book(
                appointment_id, slot_id, payment_required=True, payment_reference="order-3", payment_timeout=5
            )
        )
        await wait_until_pending(broker, "order-3")

        async with session_factory() as other:
            await AppointmentService(other, broker).cancel(appointment_id)
        result = await asyncio.wait_for(task, timeout=2)

        assert result.payment_status == "failed"
        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert not broker.is_pending("order-3")
        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.FREE.value
        assert slot.appointments == []

    @pytest.mark.asyncio
    async def test_payment_confirmed_after_cancel_is_not_booked(
        self, db_session, session_factory, schedule, make_appointment, broker
    ):
        """A late confirmation cannot revive a cancelled appointment."""
        appointment = await make_appointment()
        appointment_id, slot_id = appointment.id, schedule.slots[0].id
        task = asyncio.create_task(
            AppointmentService(db_session, broker).book(
                appointment_id, slot_id, payment_required=True, payment_reference="order-4", payment_timeout=5
            )
        )
        await wait_until_pending(broker, "order-4")

        # Cancelled through a process that cannot see this waiter
        async with session_factory() as other:
            await AppointmentService(other, PaymentConfirmationBroker()).cancel(appointment_id)
        assert broker.resolve("order-4", success=True, payment_id="pay-4") is True
        result = await asyncio.wait_for(task, timeout=2)

        assert result.payment_status == "failed"
        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        slot = await ScheduleStore(db_session).get_slot(slot_id)
        assert slot.status == SlotStatus.FREE.value
