"""Appointment management - Rescheduling, slot shifting and overbooking transfer."""

import logging
from datetime import datetime, timedelta
from uuid import UUID

import logfire
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidTransition, SlotUnavailable
from app.models.appointment import Appointment, AppointmentStatus, SlotChange
from app.models.schedule import Schedule, Slot
from app.services.appointment_service import AppointmentService
from app.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class AppointmentManagementService:
    """Service class for administrative moves of appointments and slots."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = ScheduleStore(db)
        self.appointments = AppointmentService(db)

    def _record_change(
        self,
        appointment: Appointment,
        from_slot: Slot | None,
        to_slot: Slot | None,
        previous_start: datetime | None,
        reason: str | None,
        changed_by: str | None,
    ) -> None:
        self.db.add(
            SlotChange(
                appointment_id=appointment.id,
                from_slot_id=from_slot.id if from_slot else None,
                to_slot_id=to_slot.id if to_slot else None,
                previous_start=previous_start,
                new_start=to_slot.start if to_slot else None,
                reason=reason,
                changed_by=changed_by,
            )
        )

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def reschedule(
        self,
        appointment_id: UUID,
        new_slot_id: UUID,
        reason: str | None = None,
        changed_by: str | None = None,
        allow_overbook: bool = False,
    ) -> Appointment:
        """Move a booked appointment to another slot in one transaction."""
        appointment = await self.appointments.get_appointment(appointment_id)
        if appointment.status != AppointmentStatus.BOOKED.value:
            raise InvalidTransition("Only booked appointments can be rescheduled")
        if appointment.slot_id == new_slot_id:
            return appointment

        try:
            old_slot = None
            previous_start = None
            if appointment.slot_id is not None:
                old_slot = await self.store.get_slot(appointment.slot_id)
                previous_start = old_slot.start
                await self.store.release_binding(old_slot.id, appointment)
            binding = await self.store.bind_appointment_to_slot(new_slot_id, appointment.id, allow_overbook)
            self._record_change(appointment, old_slot, binding.slot, previous_start, reason, changed_by)
            await self.db.flush()
        except Exception:
            await self.db.rollback()
            raise
        await self._commit()

        logfire.info(
            "appointment_rescheduled",
            appointment_id=str(appointment.id),
            to_slot_id=str(new_slot_id),
            changed_by=changed_by,
        )
        return await self.appointments.get_appointment(appointment.id)

    async def shift_slots(
        self,
        schedule_id: UUID,
        delta: timedelta,
        reason: str | None = None,
        changed_by: str | None = None,
    ) -> Schedule:
        """Move every slot of a schedule, and the schedule window, by ``delta``."""
        schedule = await self.store.get_schedule(schedule_id)
        if not delta:
            return schedule

        try:
            # Same exclusive barrier as deletion, then re-read under it
            await self.store.lock_schedule(schedule_id)
            schedule = await self.store.get_schedule(schedule_id)
            for slot in list(schedule.slots):
                previous_start = slot.start
                if not await self.store.compare_and_swap(slot, start=slot.start + delta, end=slot.end + delta):
                    raise SlotUnavailable("Slot is being modified concurrently, try again")
                for appointment in slot.appointments:
                    if not appointment.is_terminal:
                        self._record_change(appointment, slot, slot, previous_start, reason, changed_by)

            schedule.planning_start = schedule.planning_start + delta
            schedule.planning_end = schedule.planning_end + delta
            await self.db.flush()
        except Exception:
            await self.db.rollback()
            raise
        await self._commit()

        logger.info("Shifted schedule %s by %s", schedule_id, delta)
        logfire.info("schedule_shifted", schedule_id=str(schedule_id), minutes=delta.total_seconds() / 60)
        return await self.store.get_schedule(schedule_id)

    async def shift_slots_by_minutes(self, schedule_id: UUID, delay_minutes: int, reason=None, changed_by=None) -> Schedule:
        return await self.shift_slots(schedule_id, timedelta(minutes=delay_minutes), reason, changed_by)

    async def shift_slots_by_days(self, schedule_id: UUID, days: int, reason=None, changed_by=None) -> Schedule:
        return await self.shift_slots(schedule_id, timedelta(days=days), reason, changed_by)

    async def transfer_overbooking(
        self,
        source_slot_id: UUID,
        target_slot_id: UUID,
        reason: str | None = None,
        changed_by: str | None = None,
    ) -> tuple[Slot, Slot]:
        """Move the latest booking off an overbooked slot onto a slot that is not overbooked."""
        source = await self.store.get_slot(source_slot_id)
        target = await self.store.get_slot(target_slot_id)
        if source.id == target.id or not source.overbooked or target.overbooked:
            raise InvalidTransition("Transfer needs an overbooked source and a different, non-overbooked target")
        if not source.appointments:
            raise InvalidTransition("Source slot has no booking to transfer")

        moving = source.appointments[-1]
        comment = source.comment
        try:
            await self.store.release_binding(source.id, moving)
            binding = await self.store.bind_appointment_to_slot(target.id, moving.id, allow_overbook=True)
            if comment:
                target.comment = comment
                source.comment = None
            self._record_change(moving, source, binding.slot, source.start, reason, changed_by)
            await self.db.flush()
        except Exception:
            await self.db.rollback()
            raise
        await self._commit()

        logfire.info(
            "overbooking_transferred",
            appointment_id=str(moving.id),
            from_slot_id=str(source_slot_id),
            to_slot_id=str(target_slot_id),
        )
        return await self.store.get_slot(source_slot_id), await self.store.get_slot(target_slot_id)
