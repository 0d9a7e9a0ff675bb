import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import String, DateTime, ForeignKey, Text, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base


class AppointmentStatus(str, Enum):
    """Appointment status enum."""
    PENDING = "pending"
    BOOKED = "booked"
    CHECKED_IN = "checked_in"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({AppointmentStatus.FULFILLED.value, AppointmentStatus.CANCELLED.value})


class Appointment(Base):
    """Appointment model."""

    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    practitioner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    slot_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("slots.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=AppointmentStatus.PENDING.value,
        nullable=False,
    )
    step_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    service_category: Mapped[list | None] = mapped_column(JSON, nullable=True)
    specialty_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    participants: Mapped[list | None] = mapped_column(JSON, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    bound_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    slot: Mapped["Slot | None"] = relationship("Slot", back_populates="appointments")
    changes: Mapped[list["SlotChange"]] = relationship(
        "SlotChange",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="SlotChange.created_at",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.status}>"


class SlotChange(Base):
    """Audit row written whenever an appointment's slot or time moves."""

    __tablename__ = "slot_changes"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Plain columns, not FKs: the slots may be deleted later
    from_slot_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    to_slot_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    previous_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    new_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )

    appointment: Mapped["Appointment"] = relationship("Appointment", back_populates="changes")

    def __repr__(self) -> str:
        return f"<SlotChange {self.appointment_id} {self.from_slot_id}->{self.to_slot_id}>"
