from pydantic import BaseModel, Field, model_validator
from datetime import datetime, date, time
from uuid import UUID
from app.models.schedule import SlotStatus


class SlotBase(BaseModel):
    """Base slot schema."""
    start: datetime = Field(..., description="Slot start (clinic-local)")
    end: datetime = Field(..., description="Slot end (clinic-local)")
    comment: str | None = Field(None, description="Optional comment")


class SlotCreate(SlotBase):
    """Schema for creating a slot."""
    status: SlotStatus = SlotStatus.FREE
    overbooked: bool = False

    @model_validator(mode="after")
    def check_overbooked_is_booked(self):
        if self.overbooked and self.status != SlotStatus.BOOKED:
            raise ValueError("Only a booked slot can be overbooked")
        return self


class SlotAppointmentRef(BaseModel):
    """Appointment bound to a slot."""
    id: UUID
    patient_id: str
    status: str

    class Config:
        from_attributes = True


class SlotResponse(SlotBase):
    """Schema for slot response."""
    id: UUID
    schedule_id: UUID
    status: str
    overbooked: bool
    version: int
    appointments: list[SlotAppointmentRef] = []

    class Config:
        from_attributes = True


class ScheduleBase(BaseModel):
    """Base schedule schema."""
    practitioner_id: str = Field(..., min_length=1, max_length=64, description="Practitioner ID")
    planning_start: datetime = Field(..., description="Window start")
    planning_end: datetime = Field(..., description="Window end")
    comment: str | None = Field(None, description="Optional comment")
    specialty_id: str | None = Field(None, max_length=64, description="Specialty ID")


class ScheduleCreate(ScheduleBase):
    """Schema for creating a schedule with its slots."""
    slots: list[SlotCreate] = Field(default_factory=list)


class ScheduleResponse(ScheduleBase):
    """Schema for schedule response."""
    id: UUID
    slots: list[SlotResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ScheduleSummary(ScheduleResponse):
    """Schedule with its slot aggregates."""
    free_count: int
    overbooked_count: int
    total_count: int


class ScheduleListResponse(BaseModel):
    """Filtered schedules with aggregates across all of them."""
    schedules: list[ScheduleResponse]
    free_count: int
    overbooked_count: int
    total_count: int


class GenerateSlotsRequest(BaseModel):
    """Append consecutive slots to a schedule."""
    total_slots: int = Field(..., description="Number of slots to add")
    interval_gap: int = Field(..., description="Slot length in minutes")


class BindSlotRequest(BaseModel):
    """Bind an appointment to a slot."""
    appointment_id: UUID
    allow_overbook: bool = False


class DeleteByIdsRequest(BaseModel):
    """Delete every entity whose id is listed; unknown ids are skipped."""
    ids: list[UUID] = Field(default_factory=list)


class DateRangeDeleteRequest(BaseModel):
    """Delete schedules whose planning_start date falls in [start_date, end_date]."""
    start_date: date
    end_date: date


class TimeRangeDeleteRequest(BaseModel):
    """Delete slots of one schedule starting within [start_time, end_time)."""
    start_time: time
    end_time: time


class DeletionResult(BaseModel):
    """Outcome of a delete call; zero counts when nothing matched."""
    schedules_deleted: int = 0
    slots_deleted: int = 0
    appointments_cancelled: int = 0
