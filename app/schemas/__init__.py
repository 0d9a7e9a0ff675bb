from app.schemas.schedule import (
    SlotCreate,
    SlotResponse,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleSummary,
    ScheduleListResponse,
    GenerateSlotsRequest,
    BindSlotRequest,
    DeleteByIdsRequest,
    DateRangeDeleteRequest,
    TimeRangeDeleteRequest,
    DeletionResult,
)
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    BookRequest,
    BookingOutcome,
    RescheduleRequest,
    ShiftSlotsRequest,
    ShiftSlotsByDaysRequest,
    TransferOverbookingRequest,
)
from app.schemas.recommendation import RecommendedSlot, RankedSlot, RankRequest, RecommendationResponse
from app.schemas.payment import PaymentSignal, PaymentAck

__all__ = [
    "SlotCreate",
    "SlotResponse",
    "ScheduleCreate",
    "ScheduleResponse",
    "ScheduleSummary",
    "ScheduleListResponse",
    "GenerateSlotsRequest",
    "BindSlotRequest",
    "DeleteByIdsRequest",
    "DateRangeDeleteRequest",
    "TimeRangeDeleteRequest",
    "DeletionResult",
    "AppointmentCreate",
    "AppointmentResponse",
    "BookRequest",
    "BookingOutcome",
    "RescheduleRequest",
    "ShiftSlotsRequest",
    "ShiftSlotsByDaysRequest",
    "TransferOverbookingRequest",
    "RecommendedSlot",
    "RankedSlot",
    "RankRequest",
    "RecommendationResponse",
    "PaymentSignal",
    "PaymentAck",
]
