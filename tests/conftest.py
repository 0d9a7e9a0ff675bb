"""
Shared fixtures: in-memory database, seeded schedule, appointment factory.
"""
import asyncio
from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base
from app.models.appointment import Appointment
from app.models.schedule import Schedule
from app.schemas.schedule import ScheduleCreate, SlotCreate
from app.services.payment_service import PaymentConfirmationBroker
from app.services.schedule_store import ScheduleStore

TEST_DATABASE_URL = "sqlite+aiosqlite://"

DAY = datetime(2024, 6, 1)


def at(hour: int, minute: int = 0, day: datetime = DAY) -> datetime:
    return day.replace(hour=hour, minute=minute)


async def wait_until_pending(broker, reference: str) -> None:
    """Poll until a booking has registered its payment reference."""
    for _ in range(200):
        if broker.is_pending(reference):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"{reference} never registered")


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """One in-memory database per test, shared across sessions by StaticPool."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def broker() -> PaymentConfirmationBroker:
    return PaymentConfirmationBroker()


async def seed_schedule(session: AsyncSession) -> Schedule:
    """2024-06-01 08:00-20:00 with free slots 08:00-08:30 and 08:30-09:00."""
    store = ScheduleStore(session)
    created = await store.create_schedule(
        ScheduleCreate(
            practitioner_id="dr-smith",
            planning_start=at(8),
            planning_end=at(20),
            slots=[
                SlotCreate(start=at(8), end=at(8, 30)),
                SlotCreate(start=at(8, 30), end=at(9)),
            ],
        )
    )
    await session.commit()
    return created


@pytest_asyncio.fixture
async def schedule(db_session) -> Schedule:
    return await seed_schedule(db_session)


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """Sessions on separate connections to one file database, for concurrent writers."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduling.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def make_appointment(db_session):
    """Factory for pending appointments."""

    async def _make(patient_id: str = "patient-1", practitioner_id: str = "dr-smith") -> Appointment:
        appointment = Appointment(patient_id=patient_id, practitioner_id=practitioner_id)
        db_session.add(appointment)
        await db_session.commit()
        return appointment

    return _make
