"""API tests over the ASGI app with an in-memory database."""

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import settings
from app.database import get_db
from app.main import app
from app.services.payment_service import sign_payment

from tests.conftest import wait_until_pending

SCHEDULE = {
    "practitioner_id": "dr-smith",
    "planning_start": "2024-06-01T08:00:00",
    "planning_end": "2024-06-01T20:00:00",
    "slots": [
        {"start": "2024-06-01T08:00:00", "end": "2024-06-01T08:30:00"},
        {"start": "2024-06-01T08:30:00", "end": "2024-06-01T09:00:00"},
    ],
}


@pytest_asyncio.fixture
async def client(session_factory, broker):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    previous_broker = app.state.payment_broker
    app.state.payment_broker = broker

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.state.payment_broker = previous_broker
    app.dependency_overrides.clear()


async def create_schedule(client) -> dict:
    response = await client.post("/api/schedules/", json=SCHEDULE)
    assert response.status_code == 201
    return response.json()


async def create_appointment(client, patient_id: str = "patient-1") -> dict:
    response = await client.post(
        "/api/appointments/", json={"patient_id": patient_id, "practitioner_id": "dr-smith"}
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """Root endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestScheduleEndpoints:
    """Schedule CRUD and aggregates."""

    @pytest.mark.asyncio
    async def test_create_and_summarise(self, client):
        schedule = await create_schedule(client)

        response = await client.get(f"/api/schedules/{schedule['id']}")

        body = response.json()
        assert response.status_code == 200
        assert body["total_count"] == 2
        assert body["free_count"] == 2
        assert body["overbooked_count"] == 0

    @pytest.mark.asyncio
    async def test_inverted_window_is_422(self, client):
        payload = {**SCHEDULE, "planning_start": "2024-06-01T20:00:00", "planning_end": "2024-06-01T08:00:00", "slots": []}
        response = await client.post("/api/schedules/", json=payload)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_by_date(self, client):
        await create_schedule(client)

        hit = await client.get("/api/schedules/", params={"from_date": "2024-06-01", "to_date": "2024-06-01"})
        miss = await client.get("/api/schedules/", params={"from_date": "2024-06-02"})

        assert len(hit.json()["schedules"]) == 1
        assert hit.json()["total_count"] == 2
        assert miss.json()["schedules"] == []

    @pytest.mark.asyncio
    async def test_practitioner_schedules(self, client):
        await create_schedule(client)

        response = await client.get("/api/schedules/practitioner/dr-smith")

        assert response.status_code == 200
        assert len(response.json()["schedules"]) == 1

    @pytest.mark.asyncio
    async def test_missing_schedule_is_404(self, client):
        response = await client.get("/api/schedules/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["error"] == "ScheduleNotFound"

    @pytest.mark.asyncio
    async def test_delete_by_time_range(self, client):
        schedule = await create_schedule(client)

        response = await client.post(
            f"/api/schedules/{schedule['id']}/slots/delete-by-time-range",
            json={"start_time": "08:00", "end_time": "08:30"},
        )

        assert response.json()["slots_deleted"] == 1
        remaining = await client.get(f"/api/schedules/{schedule['id']}")
        assert [s["start"] for s in remaining.json()["slots"]] == ["2024-06-01T08:30:00"]

    @pytest.mark.asyncio
    async def test_bulk_delete_twice(self, client):
        schedule = await create_schedule(client)
        payload = {"ids": [schedule["id"]]}

        first = await client.post("/api/schedules/bulk-delete", json=payload)
        second = await client.post("/api/schedules/bulk-delete", json=payload)

        assert first.json()["schedules_deleted"] == 1
        assert second.status_code == 200
        assert second.json()["schedules_deleted"] == 0

    @pytest.mark.asyncio
    async def test_generate_slots(self, client):
        schedule = await create_schedule(client)

        response = await client.post(
            f"/api/schedules/{schedule['id']}/generate-slots", json={"total_slots": 2, "interval_gap": 30}
        )

        assert response.status_code == 201
        assert len(response.json()["slots"]) == 4


class TestBookingEndpoints:
    """Appointment booking through the API."""

    @pytest.mark.asyncio
    async def test_book_then_conflict(self, client):
        schedule = await create_schedule(client)
        slot_id = schedule["slots"][0]["id"]
        first = await create_appointment(client, "patient-1")
        second = await create_appointment(client, "patient-2")

        booked = await client.post(f"/api/appointments/{first['id']}/book", json={"slot_id": slot_id})
        conflict = await client.post(f"/api/appointments/{second['id']}/book", json={"slot_id": slot_id})
        overbooked = await client.post(
            f"/api/appointments/{second['id']}/book", json={"slot_id": slot_id, "allow_overbook": True}
        )

        assert booked.status_code == 200
        assert booked.json()["appointment"]["status"] == "booked"
        assert conflict.status_code == 409
        assert overbooked.status_code == 200

        summary = await client.get(f"/api/schedules/{schedule['id']}")
        assert summary.json()["overbooked_count"] == 1

    @pytest.mark.asyncio
    async def test_payment_confirmed_over_http(self, client, monkeypatch):
        monkeypatch.setattr(settings, "payment_webhook_secret", "whsec")
        schedule = await create_schedule(client)
        appointment = await create_appointment(client)
        slot_id = schedule["slots"][0]["id"]

        booking = asyncio.create_task(
            client.post(
                f"/api/appointments/{appointment['id']}/book",
                json={"slot_id": slot_id, "payment_required": True, "payment_reference": "order-9", "payment_timeout": 5},
            )
        )
        await wait_until_pending(app.state.payment_broker, "order-9")

        bad = await client.post(
            "/api/payments/confirm",
            json={"reference": "order-9", "status": "success", "payment_id": "pay-9", "signature": "forged"},
        )
        good = await client.post(
            "/api/payments/confirm",
            json={
                "reference": "order-9",
                "status": "success",
                "payment_id": "pay-9",
                "signature": sign_payment("order-9", "pay-9", "whsec"),
            },
        )
        response = await booking

        assert bad.status_code == 401
        assert good.json() == {"reference": "order-9", "accepted": True}
        assert response.json()["payment_status"] == "confirmed"
        assert response.json()["appointment"]["status"] == "booked"

    @pytest.mark.asyncio
    async def test_signal_without_waiter_is_404(self, client):
        response = await client.post("/api/payments/confirm", json={"reference": "nobody", "status": "failed"})
        assert response.status_code == 404


class TestRecommendationEndpoints:
    """Ranking endpoints."""

    @pytest.mark.asyncio
    async def test_rank(self, client):
        base = {
            "schedule_id": "00000000-0000-0000-0000-000000000001",
            "practitioner_id": "dr-smith",
            "start": "2024-06-01T09:00:00",
            "end": "2024-06-01T09:30:00",
            "rule_score": 1.0,
            "predicted_wait_time": 5,
            "cancellation_risk": 0.1,
            "reason": [],
        }
        candidates = [
            {**base, "slot_id": f"00000000-0000-0000-0000-00000000001{i}", "final_score": score}
            for i, score in enumerate([0.8, 1.3, 1.1])
        ]

        response = await client.post("/api/recommendations/rank", json={"candidates": candidates})

        assert [c["final_score"] for c in response.json()] == [1.3, 1.1, 0.8]

    @pytest.mark.asyncio
    async def test_rank_empty_is_422(self, client):
        response = await client.post("/api/recommendations/rank", json={"candidates": []})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_regular_fallback(self, client):
        await create_schedule(client)
        appointment = await create_appointment(client)

        response = await client.get(f"/api/recommendations/{appointment['id']}")

        body = response.json()
        assert body["source"] == "regular"
        assert len(body["recommendations"]) == 2
