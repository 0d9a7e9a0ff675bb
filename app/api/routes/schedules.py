"""Schedule routes - API endpoints for schedules and their slots."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter

from app.api.deps import DBSession, PaymentBroker
from app.schemas.schedule import (
    DateRangeDeleteRequest,
    DeleteByIdsRequest,
    DeletionResult,
    GenerateSlotsRequest,
    ScheduleCreate,
    ScheduleListResponse,
    ScheduleResponse,
    ScheduleSummary,
    SlotCreate,
    SlotResponse,
    TimeRangeDeleteRequest,
)
from app.services.availability_service import (
    AvailabilityService,
    count_free,
    count_overbooked,
    count_total,
)
from app.services.bulk_mutation_service import BulkMutationService
from app.services.schedule_store import ScheduleStore

router = APIRouter()


def _list_response(schedules) -> ScheduleListResponse:
    return ScheduleListResponse(
        schedules=[ScheduleResponse.model_validate(s) for s in schedules],
        free_count=count_free(schedules),
        overbooked_count=count_overbooked(schedules),
        total_count=count_total(schedules),
    )


@router.post("/", response_model=ScheduleResponse, status_code=201)
async def create_schedule(schedule_data: ScheduleCreate, db: DBSession):
    """Create a schedule with its initial slots."""
    store = ScheduleStore(db)
    return await store.create_schedule(schedule_data)


@router.get("/", response_model=ScheduleListResponse)
async def list_schedules(
    db: DBSession,
    from_date: date | None = None,
    to_date: date | None = None,
):
    """Schedules starting within [from_date, to_date], with slot counts."""
    service = AvailabilityService(db)
    schedules = await service.get_schedules(from_date=from_date, to_date=to_date)
    return _list_response(schedules)


@router.get("/practitioner/{practitioner_id}", response_model=ScheduleListResponse)
async def get_practitioner_schedules(
    practitioner_id: str,
    db: DBSession,
    from_date: date | None = None,
    to_date: date | None = None,
):
    """A practitioner's schedules, with slot counts."""
    service = AvailabilityService(db)
    schedules = await service.get_schedules(practitioner_id, from_date, to_date)
    return _list_response(schedules)


@router.post("/bulk-delete", response_model=DeletionResult)
async def bulk_delete_schedules(request: DeleteByIdsRequest, db: DBSession, broker: PaymentBroker):
    """Delete the listed schedules. Unknown ids are ignored."""
    service = BulkMutationService(db, broker=broker)
    return await service.delete_schedules_by_ids(request.ids)


@router.post("/delete-by-date-range", response_model=DeletionResult)
async def delete_schedules_by_date_range(request: DateRangeDeleteRequest, db: DBSession, broker: PaymentBroker):
    """Delete every schedule starting within the date range."""
    service = BulkMutationService(db, broker=broker)
    return await service.delete_schedules_by_date_range(request.start_date, request.end_date)


@router.get("/{schedule_id}", response_model=ScheduleSummary)
async def get_schedule(schedule_id: UUID, db: DBSession):
    """Get a schedule, its slots and slot counts."""
    service = AvailabilityService(db)
    schedule, counts = await service.get_schedule_summary(schedule_id)
    return ScheduleSummary(**ScheduleResponse.model_validate(schedule).model_dump(), **counts)


@router.delete("/{schedule_id}", response_model=DeletionResult)
async def delete_schedule(schedule_id: UUID, db: DBSession, broker: PaymentBroker):
    """Delete a schedule and all its slots."""
    service = BulkMutationService(db, broker=broker)
    return await service.delete_schedule(schedule_id)


@router.post("/{schedule_id}/slots", response_model=SlotResponse, status_code=201)
async def create_slot(schedule_id: UUID, slot_data: SlotCreate, db: DBSession):
    """Add one slot to a schedule."""
    store = ScheduleStore(db)
    return await store.create_slot(schedule_id, slot_data)


@router.post("/{schedule_id}/generate-slots", response_model=ScheduleResponse, status_code=201)
async def generate_slots(schedule_id: UUID, request: GenerateSlotsRequest, db: DBSession):
    """Append back-to-back slots after the last existing one."""
    store = ScheduleStore(db)
    return await store.generate_slots(schedule_id, request.total_slots, request.interval_gap)


@router.delete("/{schedule_id}/slots/{slot_id}", response_model=DeletionResult)
async def delete_slot(schedule_id: UUID, slot_id: UUID, db: DBSession, broker: PaymentBroker):
    """Delete one slot of a schedule."""
    service = BulkMutationService(db, broker=broker)
    return await service.delete_slot(schedule_id, slot_id)


@router.post("/{schedule_id}/slots/delete-by-time-range", response_model=DeletionResult)
async def delete_slots_by_time_range(schedule_id: UUID, request: TimeRangeDeleteRequest, db: DBSession, broker: PaymentBroker):
    """Delete the schedule's slots starting within [start_time, end_time)."""
    service = BulkMutationService(db, broker=broker)
    return await service.delete_slots_by_time_range(schedule_id, request.start_time, request.end_time)
