"""Domain errors raised by the scheduling core.

Each error carries the HTTP status the API layer answers with, so routes
can let them propagate to the handler registered in ``app.api.errors``.
"""


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    status_code: int = 400
    default_detail: str = "Scheduling error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidWindow(SchedulingError):
    status_code = 422
    default_detail = "Invalid time window"


class SlotUnavailable(SchedulingError):
    status_code = 409
    default_detail = "Slot unavailable, choose another or confirm overbooking"


class ScheduleNotFound(SchedulingError):
    status_code = 404
    default_detail = "Schedule not found"


class SlotNotFound(SchedulingError):
    status_code = 404
    default_detail = "Slot not found"


class AppointmentNotFound(SchedulingError):
    status_code = 404
    default_detail = "Appointment not found"


class InvalidTransition(SchedulingError):
    status_code = 409
    default_detail = "Transition not allowed from the current state"


class BoundAppointmentsExist(SchedulingError):
    """Deletion refused because live appointments are bound to the slots."""

    status_code = 409
    default_detail = "Slots have active appointments; cancel them before deleting"


class EmptyCandidateSet(SchedulingError):
    status_code = 422
    default_detail = "No candidate slots to rank"


class PaymentTimeout(SchedulingError):
    status_code = 408
    default_detail = "Payment confirmation timed out"


class PaymentFailed(SchedulingError):
    status_code = 402
    default_detail = "Payment failed"


class InvalidPaymentSignature(SchedulingError):
    status_code = 401
    default_detail = "Invalid payment signature"


class ScoringServiceUnavailable(SchedulingError):
    status_code = 503
    default_detail = "Scoring service unavailable"
