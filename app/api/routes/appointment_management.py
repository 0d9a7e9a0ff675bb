"""Appointment management routes - Reschedule and shift operations for staff."""

from fastapi import APIRouter

from app.api.deps import DBSession
from app.schemas.appointment import (
    AppointmentResponse,
    RescheduleRequest,
    ShiftSlotsByDaysRequest,
    ShiftSlotsRequest,
    TransferOverbookingRequest,
)
from app.schemas.schedule import ScheduleResponse, SlotResponse
from app.services.appointment_management_service import AppointmentManagementService

router = APIRouter()


@router.put("/update-slot", response_model=AppointmentResponse)
async def update_slot(request: RescheduleRequest, db: DBSession):
    """Move a booked appointment to another slot."""
    service = AppointmentManagementService(db)
    return await service.reschedule(
        request.appointment_id,
        request.new_slot_id,
        reason=request.reason,
        changed_by=request.changed_by,
        allow_overbook=request.allow_overbook,
    )


@router.put("/shift-slots", response_model=ScheduleResponse)
async def shift_slots(request: ShiftSlotsRequest, db: DBSession):
    """Delay (or advance) every slot of a schedule by some minutes."""
    service = AppointmentManagementService(db)
    return await service.shift_slots_by_minutes(
        request.schedule_id, request.delay_minutes, request.reason, request.changed_by
    )


@router.put("/shift-slots-day", response_model=ScheduleResponse)
async def shift_slots_day(request: ShiftSlotsByDaysRequest, db: DBSession):
    """Move every slot of a schedule by whole days."""
    service = AppointmentManagementService(db)
    return await service.shift_slots_by_days(
        request.schedule_id, request.shift_value, request.reason, request.changed_by
    )


@router.put("/transfer-overbooking", response_model=list[SlotResponse])
async def transfer_overbooking(request: TransferOverbookingRequest, db: DBSession):
    """Move the extra booking off an overbooked slot. Returns [source, target]."""
    service = AppointmentManagementService(db)
    source, target = await service.transfer_overbooking(
        request.source_slot_id, request.target_slot_id, request.reason, request.changed_by
    )
    return [source, target]
