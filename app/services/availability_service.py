"""Availability service - Date-filtered schedule queries and slot aggregates."""

from collections.abc import Iterable
from datetime import date, datetime, time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.schedule import Schedule, Slot, SlotStatus
from app.services.schedule_store import ScheduleStore

DAY_START = time.min
DAY_END = time(23, 59, 59, 999000)


def day_bounds(from_date: date | None, to_date: date | None) -> tuple[datetime | None, datetime | None]:
    """Widen an inclusive date filter to 00:00:00.000 .. 23:59:59.999."""
    lower = datetime.combine(from_date, DAY_START) if from_date else None
    upper = datetime.combine(to_date, DAY_END) if to_date else None
    return lower, upper


def count_free(schedules: Iterable[Schedule]) -> int:
    """Slots that are not overbooked, booked or not."""
    return sum(1 for schedule in schedules for slot in schedule.slots if not slot.overbooked)


def count_overbooked(schedules: Iterable[Schedule]) -> int:
    return sum(1 for schedule in schedules for slot in schedule.slots if slot.overbooked)


def count_total(schedules: Iterable[Schedule]) -> int:
    return sum(len(schedule.slots) for schedule in schedules)


class AvailabilityService:
    """Service class for availability queries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_schedules(
        self,
        practitioner_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[Schedule]:
        """Schedules whose planning_start date lies in [from_date, to_date].

        Either bound may be omitted; omitting both returns every schedule.
        """
        query = select(Schedule)

        if practitioner_id is not None:
            query = query.where(Schedule.practitioner_id == practitioner_id)

        lower, upper = day_bounds(from_date, to_date)
        if lower is not None:
            query = query.where(Schedule.planning_start >= lower)
        if upper is not None:
            query = query.where(Schedule.planning_start <= upper)

        query = query.order_by(Schedule.planning_start).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_schedule_summary(self, schedule_id: UUID) -> tuple[Schedule, dict[str, int]]:
        """A schedule plus its free/overbooked/total slot counts."""
        schedule = await ScheduleStore(self.db).get_schedule(schedule_id)
        return schedule, {
            "free_count": count_free([schedule]),
            "overbooked_count": count_overbooked([schedule]),
            "total_count": count_total([schedule]),
        }

    async def get_free_slots(
        self,
        practitioner_id: str,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[tuple[Schedule, Slot]]:
        """Free slots of a practitioner in the window, earliest first."""
        schedules = await self.get_schedules(practitioner_id, from_date, to_date)
        return [
            (schedule, slot)
            for schedule in schedules
            for slot in schedule.slots
            if slot.status == SlotStatus.FREE.value
        ]
