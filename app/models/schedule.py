import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import String, DateTime, ForeignKey, Text, Boolean, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base


class SlotStatus(str, Enum):
    """Slot status enum."""
    FREE = "free"
    BOOKED = "booked"


class Schedule(Base):
    """A practitioner's availability window, usually one calendar day."""

    __tablename__ = "schedules"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    practitioner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    specialty_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    planning_start: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        index=True,
    )
    planning_end: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    # Slots live and die with their schedule
    slots: Mapped[list["Slot"]] = relationship(
        "Slot",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="Slot.start",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("planning_start < planning_end", name="schedule_window_order"),
    )

    def __repr__(self) -> str:
        return f"<Schedule {self.practitioner_id} {self.planning_start}>"


class Slot(Base):
    """A bookable time unit inside a schedule."""

    __tablename__ = "slots"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    schedule_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=SlotStatus.FREE.value,
        nullable=False,
    )
    overbooked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Optimistic concurrency token, bumped by every compare-and-swap
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    schedule: Mapped["Schedule"] = relationship("Schedule", back_populates="slots")
    # Non-owning: appointments outlive the slot they point at
    appointments: Mapped[list["Appointment"]] = relationship(
        "Appointment",
        back_populates="slot",
        order_by="Appointment.bound_at",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint('start < "end"', name="slot_window_order"),
    )

    @property
    def is_free(self) -> bool:
        return self.status == SlotStatus.FREE.value

    def __repr__(self) -> str:
        return f"<Slot {self.start}-{self.end} {self.status}>"
