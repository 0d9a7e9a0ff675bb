"""Schedule store - Canonical schedule/slot lifecycle and slot binding."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    AppointmentNotFound,
    InvalidTransition,
    InvalidWindow,
    ScheduleNotFound,
    SlotNotFound,
    SlotUnavailable,
)
from app.models.appointment import Appointment
from app.models.schedule import Schedule, Slot, SlotStatus
from app.schemas.schedule import ScheduleCreate, SlotCreate

logger = logging.getLogger(__name__)


@dataclass
class Binding:
    """A slot binding plus the slot state it replaced, used for rollback."""

    slot: Slot
    appointment: Appointment
    previous_status: str
    previous_overbooked: bool
    previous_refs: frozenset[UUID] = field(default_factory=frozenset)


def check_window(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidWindow(f"Window start {start} must be before end {end}")


def check_slot_in_schedule(schedule: Schedule, start: datetime, end: datetime) -> None:
    """Slots must lie inside [planning_start, planning_end)."""
    check_window(start, end)
    if start < schedule.planning_start or end > schedule.planning_end:
        raise InvalidWindow(
            f"Slot {start:%H:%M}-{end:%H:%M} falls outside the schedule window "
            f"{schedule.planning_start} - {schedule.planning_end}"
        )


class ScheduleStore:
    """Owns schedules and slots.

    Every change to a slot's booking state goes through ``compare_and_swap``,
    which only applies when the slot's ``version`` is still the one we read.
    """

    def __init__(self, db: AsyncSession, max_attempts: int | None = None):
        self.db = db
        self.max_attempts = max_attempts or settings.bind_max_attempts

    # ==================== READS ====================

    async def get_schedule(self, schedule_id: UUID) -> Schedule:
        """Get a schedule with its slots, or raise ScheduleNotFound."""
        result = await self.db.execute(
            select(Schedule)
            .where(Schedule.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        schedule = result.scalar_one_or_none()
        if schedule is None:
            raise ScheduleNotFound(f"Schedule {schedule_id} not found")
        return schedule

    async def find_schedule(self, schedule_id: UUID) -> Schedule | None:
        try:
            return await self.get_schedule(schedule_id)
        except ScheduleNotFound:
            return None

    async def get_slot(self, slot_id: UUID) -> Slot:
        """Get a slot with its bound appointments, or raise SlotNotFound."""
        result = await self.db.execute(
            select(Slot)
            .where(Slot.id == slot_id)
            .execution_options(populate_existing=True)
        )
        slot = result.scalar_one_or_none()
        if slot is None:
            raise SlotNotFound(f"Slot {slot_id} not found")
        return slot

    # ==================== AUTHORING ====================

    async def create_schedule(self, schedule_data: ScheduleCreate) -> Schedule:
        """Create a schedule and its slots in one go."""
        check_window(schedule_data.planning_start, schedule_data.planning_end)

        schedule = Schedule(**schedule_data.model_dump(exclude={"slots"}))
        for slot_data in schedule_data.slots:
            check_slot_in_schedule(schedule, slot_data.start, slot_data.end)
            schedule.slots.append(self._new_slot(slot_data))

        self.db.add(schedule)
        await self.db.flush()
        return await self.get_schedule(schedule.id)

    async def create_slot(self, schedule_id: UUID, slot_data: SlotCreate) -> Slot:
        """Add a single slot to an existing schedule."""
        schedule = await self.get_schedule(schedule_id)
        check_slot_in_schedule(schedule, slot_data.start, slot_data.end)

        slot = self._new_slot(slot_data)
        schedule.slots.append(slot)
        await self.db.flush()
        return await self.get_slot(slot.id)

    async def generate_slots(self, schedule_id: UUID, total_slots: int, interval_gap: int) -> Schedule:
        """Append ``total_slots`` back-to-back slots of ``interval_gap`` minutes."""
        if total_slots <= 0 or interval_gap <= 0:
            raise InvalidWindow("total_slots and interval_gap must be positive")

        schedule = await self.get_schedule(schedule_id)
        cursor = schedule.slots[-1].end if schedule.slots else schedule.planning_start
        gap = timedelta(minutes=interval_gap)

        for _ in range(total_slots):
            check_slot_in_schedule(schedule, cursor, cursor + gap)
            schedule.slots.append(
                Slot(start=cursor, end=cursor + gap, status=SlotStatus.FREE.value, overbooked=False, appointments=[])
            )
            cursor += gap

        await self.db.flush()
        return await self.get_schedule(schedule_id)

    @staticmethod
    def _new_slot(slot_data: SlotCreate) -> Slot:
        return Slot(
            start=slot_data.start,
            end=slot_data.end,
            status=slot_data.status.value,
            overbooked=slot_data.overbooked,
            comment=slot_data.comment,
            appointments=[],
        )

    # ==================== BINDING ====================

    async def compare_and_swap(self, slot: Slot, **values) -> bool:
        """Apply ``values`` to the slot only if nobody changed it since we read it."""
        result = await self.db.execute(
            update(Slot)
            .where(Slot.id == slot.id, Slot.version == slot.version)
            .values(version=Slot.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(slot, attribute_names=["status", "overbooked", "version", "start", "end", "comment"])
        return True

    async def _lock_slot(self, slot_id: UUID) -> Slot:
        """Load a fresh slot and share-lock its schedule against deletion."""
        slot = await self.get_slot(slot_id)
        await self.db.execute(
            select(Schedule.id).where(Schedule.id == slot.schedule_id).with_for_update(read=True)
        )
        return slot

    async def bind_appointment_to_slot(
        self, slot_id: UUID, appointment_id: UUID, allow_overbook: bool = False
    ) -> Binding:
        """Bind an appointment to a slot.

        A free slot becomes booked. A booked slot raises SlotUnavailable unless
        ``allow_overbook`` is set, in which case the reference is added and the
        slot is flagged overbooked.
        """
        appointment = await self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")
        if appointment.slot_id is not None and appointment.slot_id != slot_id:
            raise InvalidTransition("Appointment is already bound to another slot")
        if appointment.is_terminal:
            raise InvalidTransition(f"Cannot bind an appointment that is {appointment.status}")

        for attempt in range(1, self.max_attempts + 1):
            slot = await self._lock_slot(slot_id)
            refs = frozenset(a.id for a in slot.appointments)
            if appointment.id in refs:
                return Binding(slot, appointment, slot.status, slot.overbooked, refs - {appointment.id})

            previous_status, previous_overbooked = slot.status, slot.overbooked
            if slot.is_free:
                overbooked = slot.overbooked
            elif allow_overbook:
                overbooked = True
            else:
                raise SlotUnavailable()

            if await self.compare_and_swap(slot, status=SlotStatus.BOOKED.value, overbooked=overbooked):
                slot.appointments.append(appointment)
                appointment.bound_at = datetime.utcnow()
                await self.db.flush()
                logger.info(
                    "Bound appointment %s to slot %s (overbooked=%s)", appointment.id, slot.id, overbooked
                )
                return Binding(slot, appointment, previous_status, previous_overbooked, refs)

            logger.info("Slot %s changed concurrently, retrying bind (attempt %d)", slot_id, attempt)

        raise SlotUnavailable("Slot is being modified concurrently, try again")

    async def release_binding(
        self, slot_id: UUID, appointment: Appointment, restore: Binding | None = None
    ) -> Slot | None:
        """Detach an appointment from its slot.

        The slot turns free when nothing else references it; otherwise it stays
        booked and is only overbooked while more than one reference remains.
        With ``restore``, the pre-bind state comes back if the remaining
        references are exactly the ones the slot had before that bind.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                slot = await self._lock_slot(slot_id)
            except SlotNotFound:
                appointment.slot_id = None
                appointment.bound_at = None
                await self.db.flush()
                return None

            remaining = [a for a in slot.appointments if a.id != appointment.id]
            if restore is not None and frozenset(a.id for a in remaining) == restore.previous_refs:
                status, overbooked = restore.previous_status, restore.previous_overbooked
            elif not remaining:
                status, overbooked = SlotStatus.FREE.value, False
            else:
                status, overbooked = SlotStatus.BOOKED.value, len(remaining) > 1

            if await self.compare_and_swap(slot, status=status, overbooked=overbooked):
                if appointment in slot.appointments:
                    slot.appointments.remove(appointment)
                appointment.slot_id = None
                appointment.bound_at = None
                await self.db.flush()
                logger.info("Released appointment %s from slot %s", appointment.id, slot.id)
                return slot

            logger.info("Slot %s changed concurrently, retrying release (attempt %d)", slot_id, attempt)

        raise SlotUnavailable("Slot is being modified concurrently, try again")

    async def lock_schedule(self, schedule_id: UUID) -> None:
        """Exclusive lock on the schedule row; waits out binds holding the share lock."""
        await self.db.execute(
            select(Schedule.id).where(Schedule.id == schedule_id).with_for_update()
        )

    # ==================== DELETION ====================

    async def delete_schedule(self, schedule_id: UUID) -> int:
        """Delete a schedule and all its slots. Returns the number of slots removed."""
        schedule = await self.get_schedule(schedule_id)
        await self.lock_schedule(schedule_id)
        slot_count = len(schedule.slots)
        await self.db.delete(schedule)
        await self.db.flush()
        return slot_count

    async def delete_slot(self, schedule_id: UUID, slot_id: UUID) -> None:
        """Delete one slot of a schedule."""
        schedule = await self.get_schedule(schedule_id)
        slot = next((s for s in schedule.slots if s.id == slot_id), None)
        if slot is None:
            raise SlotNotFound(f"Slot {slot_id} not found in schedule {schedule_id}")
        schedule.slots.remove(slot)
        await self.db.flush()
