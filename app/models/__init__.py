from app.models.schedule import Schedule, Slot, SlotStatus
from app.models.appointment import Appointment, AppointmentStatus, SlotChange, TERMINAL_STATUSES

__all__ = [
    "Schedule",
    "Slot",
    "SlotStatus",
    "Appointment",
    "AppointmentStatus",
    "SlotChange",
    "TERMINAL_STATUSES",
]
