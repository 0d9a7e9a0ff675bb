"""Bulk mutation service - Idempotent deletion of schedules and slots.

Deleting a schedule removes all its slots in the same transaction. Live
appointments bound to a slot being removed are cancelled alongside it
(``orphan_policy="cancel"``) or block the deletion (``"reject"``).
"""

import logging
from collections.abc import Iterable
from datetime import date, time
from uuid import UUID

import logfire
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import BoundAppointmentsExist, SlotNotFound
from app.models.schedule import Schedule, Slot
from app.schemas.schedule import DeletionResult
from app.services.appointment_service import CANCELLED, advance
from app.services.availability_service import AvailabilityService
from app.services.payment_service import PaymentConfirmationBroker, payment_broker
from app.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class BulkMutationService:
    """Service class for administrative deletions."""

    def __init__(
        self,
        db: AsyncSession,
        orphan_policy: str | None = None,
        broker: PaymentConfirmationBroker | None = None,
    ):
        self.db = db
        self.orphan_policy = orphan_policy or settings.orphan_policy
        self.broker = broker or payment_broker
        self.store = ScheduleStore(db)
        # Payment references of appointments cancelled in the current transaction
        self._cancelled_references: list[str] = []

    async def _settle_bound_appointments(self, slots: list[Slot]) -> int:
        """Apply the orphan policy to live appointments on ``slots``."""
        live = [
            appointment
            for slot in slots
            for appointment in slot.appointments
            if not appointment.is_terminal
        ]
        if not live:
            return 0
        if self.orphan_policy == "reject":
            raise BoundAppointmentsExist(
                f"{len(live)} active appointment(s) are bound to the slots being deleted"
            )

        for slot in slots:
            for appointment in [a for a in slot.appointments if not a.is_terminal]:
                slot.appointments.remove(appointment)
                appointment.slot_id = None
                appointment.bound_at = None
                advance(appointment, CANCELLED)
                if appointment.payment_reference:
                    self._cancelled_references.append(appointment.payment_reference)
                logger.info("Cancelled appointment %s bound to deleted slot %s", appointment.id, slot.id)
        # Store reads use populate_existing, so pending changes must hit the DB first
        await self.db.flush()
        return len(live)

    async def _commit(self, result: DeletionResult, operation: str) -> DeletionResult:
        try:
            await self.db.commit()
        except Exception:
            self._cancelled_references.clear()
            await self.db.rollback()
            raise

        # Bookings still waiting on payment for a cancelled appointment fail now
        references, self._cancelled_references = self._cancelled_references, []
        for reference in references:
            if self.broker.is_pending(reference):
                self.broker.resolve(reference, success=False)
        logfire.info(operation, **result.model_dump())
        return result

    async def _delete_schedules(self, schedules: list[Schedule], operation: str) -> DeletionResult:
        result = DeletionResult()
        try:
            for schedule in schedules:
                result.appointments_cancelled += await self._settle_bound_appointments(schedule.slots)
                result.slots_deleted += await self.store.delete_schedule(schedule.id)
                result.schedules_deleted += 1
        except Exception:
            self._cancelled_references.clear()
            await self.db.rollback()
            raise
        return await self._commit(result, operation)

    async def _delete_slots(self, slots: list[Slot], operation: str) -> DeletionResult:
        result = DeletionResult()
        try:
            result.appointments_cancelled = await self._settle_bound_appointments(slots)
            for slot in slots:
                await self.store.delete_slot(slot.schedule_id, slot.id)
                result.slots_deleted += 1
        except Exception:
            self._cancelled_references.clear()
            await self.db.rollback()
            raise
        return await self._commit(result, operation)

    # ==================== STRICT ====================

    async def delete_schedule(self, schedule_id: UUID) -> DeletionResult:
        """Delete one schedule; raises ScheduleNotFound if it does not exist."""
        schedule = await self.store.get_schedule(schedule_id)
        return await self._delete_schedules([schedule], "schedule_deleted")

    async def delete_slot(self, schedule_id: UUID, slot_id: UUID) -> DeletionResult:
        """Delete one slot; raises ScheduleNotFound/SlotNotFound if missing."""
        schedule = await self.store.get_schedule(schedule_id)
        slot = next((s for s in schedule.slots if s.id == slot_id), None)
        if slot is None:
            raise SlotNotFound(f"Slot {slot_id} not found in schedule {schedule_id}")
        return await self._delete_slots([slot], "slot_deleted")

    # ==================== IDEMPOTENT ====================

    async def delete_schedules_by_ids(self, schedule_ids: Iterable[UUID]) -> DeletionResult:
        """Delete every listed schedule; unknown ids are skipped."""
        ids = set(schedule_ids)
        if not ids:
            return DeletionResult()
        result = await self.db.execute(
            select(Schedule)
            .where(Schedule.id.in_(ids))
            .order_by(Schedule.planning_start)
            .execution_options(populate_existing=True)
        )
        schedules = list(result.scalars().all())
        return await self._delete_schedules(schedules, "schedules_deleted_by_ids")

    async def delete_slots_by_ids(self, slot_ids: Iterable[UUID]) -> DeletionResult:
        """Delete every listed slot, across schedules; unknown ids are skipped."""
        ids = set(slot_ids)
        if not ids:
            return DeletionResult()
        result = await self.db.execute(
            select(Slot).where(Slot.id.in_(ids)).execution_options(populate_existing=True)
        )
        slots = list(result.scalars().all())
        return await self._delete_slots(slots, "slots_deleted_by_ids")

    async def delete_schedules_by_date_range(
        self, start_date: date, end_date: date, practitioner_id: str | None = None
    ) -> DeletionResult:
        """Delete schedules whose planning_start date is in [start_date, end_date]."""
        schedules = await AvailabilityService(self.db).get_schedules(practitioner_id, start_date, end_date)
        return await self._delete_schedules(schedules, "schedules_deleted_by_date_range")

    async def delete_slots_by_time_range(
        self, schedule_id: UUID, start_time: time, end_time: time
    ) -> DeletionResult:
        """Delete slots of one schedule whose start time-of-day is in [start_time, end_time).

        A schedule that no longer exists is treated as already cleared.
        """
        schedule = await self.store.find_schedule(schedule_id)
        if schedule is None:
            return DeletionResult()
        doomed = [slot for slot in schedule.slots if start_time <= slot.start.time() < end_time]
        if not doomed:
            return DeletionResult()
        return await self._delete_slots(doomed, "slots_deleted_by_time_range")
