"""Slot routes - API endpoints that address slots directly."""

from uuid import UUID

from fastapi import APIRouter

from app.api.deps import DBSession, PaymentBroker
from app.schemas.schedule import BindSlotRequest, DeleteByIdsRequest, DeletionResult, SlotResponse
from app.services.bulk_mutation_service import BulkMutationService
from app.services.schedule_store import ScheduleStore

router = APIRouter()


@router.post("/bulk-delete", response_model=DeletionResult)
async def bulk_delete_slots(request: DeleteByIdsRequest, db: DBSession, broker: PaymentBroker):
    """Delete the listed slots across schedules. Unknown ids are ignored."""
    service = BulkMutationService(db, broker=broker)
    return await service.delete_slots_by_ids(request.ids)


@router.get("/{slot_id}", response_model=SlotResponse)
async def get_slot(slot_id: UUID, db: DBSession):
    """Get a slot with its bound appointments."""
    store = ScheduleStore(db)
    return await store.get_slot(slot_id)


@router.post("/{slot_id}/bind", response_model=SlotResponse)
async def bind_slot(slot_id: UUID, request: BindSlotRequest, db: DBSession):
    """Bind an appointment to a slot without changing the appointment's state."""
    store = ScheduleStore(db)
    binding = await store.bind_appointment_to_slot(slot_id, request.appointment_id, request.allow_overbook)
    await db.commit()
    return binding.slot
