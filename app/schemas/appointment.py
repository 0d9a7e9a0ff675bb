from typing import Literal
from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class AppointmentBase(BaseModel):
    """Base appointment schema."""
    patient_id: str = Field(..., min_length=1, max_length=64, description="Patient ID")
    practitioner_id: str = Field(..., min_length=1, max_length=64, description="Practitioner ID")
    specialty_id: str | None = Field(None, max_length=64, description="Specialty ID")
    service_category: list[dict] | None = Field(None, description="Service category codings")
    participants: list[dict] | None = Field(None, description="Participants and their status")
    description: str | None = Field(None, description="Optional notes")


class AppointmentCreate(AppointmentBase):
    """Schema for creating an appointment."""
    step_count: int = Field(1, ge=0, description="Booking workflow step")


class AppointmentResponse(AppointmentBase):
    """Schema for appointment response."""
    id: UUID
    slot_id: UUID | None
    status: str
    step_count: int
    payment_reference: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BookRequest(BaseModel):
    """Bind a pending appointment to a slot, optionally waiting for payment."""
    slot_id: UUID
    allow_overbook: bool = False
    payment_required: bool = False
    payment_reference: str | None = Field(None, max_length=100, description="Payment/order reference")
    payment_timeout: float | None = Field(None, gt=0, description="Seconds to wait for confirmation")


class BookingOutcome(BaseModel):
    """Result of a booking attempt."""
    appointment: AppointmentResponse
    payment_status: Literal["not_required", "confirmed", "failed", "timeout"]


class RescheduleRequest(BaseModel):
    """Move a booked appointment to another slot."""
    appointment_id: UUID
    new_slot_id: UUID
    reason: str | None = None
    changed_by: str | None = None
    allow_overbook: bool = False


class ShiftSlotsRequest(BaseModel):
    """Shift every slot of a schedule by a number of minutes."""
    schedule_id: UUID
    delay_minutes: int
    reason: str | None = None
    changed_by: str | None = None


class ShiftSlotsByDaysRequest(BaseModel):
    """Shift every slot of a schedule by whole days."""
    schedule_id: UUID
    shift_value: int = Field(..., description="Days to shift (may be negative)")
    reason: str | None = None
    changed_by: str | None = None


class TransferOverbookingRequest(BaseModel):
    """Move the extra booking from an overbooked slot onto another slot."""
    source_slot_id: UUID
    target_slot_id: UUID
    reason: str | None = None
    changed_by: str | None = None
