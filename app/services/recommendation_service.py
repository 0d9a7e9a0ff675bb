"""Recommendation service - Ranks candidate slots scored upstream.

Scores are computed by the predictive scoring service. This module only
orders and annotates them; it never derives ``final_score`` itself.
"""

import logging
from collections.abc import Iterable
from datetime import date
from uuid import UUID

import httpx
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import EmptyCandidateSet, ScoringServiceUnavailable
from app.models.appointment import Appointment
from app.models.schedule import Schedule, Slot
from app.schemas.recommendation import RankedSlot, RecommendedSlot
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

REGULAR_REASON = "Regular slot booking"

_candidate_list = TypeAdapter(list[RecommendedSlot])


def rank_candidates(candidates: Iterable[RecommendedSlot], top_n: int | None = None) -> list[RankedSlot]:
    """Order by final_score descending, earliest start first on ties.

    The first ``top_n`` entries (default ``settings.top_pick_count``) are
    flagged as top picks. Raises EmptyCandidateSet for an empty input.
    """
    candidates = list(candidates)
    if not candidates:
        raise EmptyCandidateSet()

    top_n = settings.top_pick_count if top_n is None else top_n
    ordered = sorted(candidates, key=lambda c: (-c.final_score, c.start, str(c.slot_id)))

    return [
        RankedSlot(**candidate.model_dump(), rank=position, top_pick=position <= top_n)
        for position, candidate in enumerate(ordered, start=1)
    ]


def regular_candidates(free_slots: Iterable[tuple[Schedule, Slot]]) -> list[RecommendedSlot]:
    """Plain availability as candidates with neutral, identical scores."""
    return [
        RecommendedSlot(
            slot_id=slot.id,
            schedule_id=schedule.id,
            practitioner_id=schedule.practitioner_id,
            start=slot.start,
            end=slot.end,
            rule_score=1.0,
            predicted_wait_time=settings.regular_wait_minutes,
            cancellation_risk=settings.regular_cancellation_risk,
            final_score=1.0,
            reason=[REGULAR_REASON],
        )
        for schedule, slot in free_slots
    ]


class ScoringClient:
    """HTTP client for the predictive scoring service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = settings.scoring_service_url if base_url is None else base_url
        self.timeout = timeout or settings.scoring_service_timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def fetch_candidates(
        self,
        appointment: Appointment,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[RecommendedSlot]:
        """Ask the scoring service for scored candidate slots."""
        payload = {
            "appointment_id": str(appointment.id),
            "patient_id": appointment.patient_id,
            "practitioner_id": appointment.practitioner_id,
            "specialty_id": appointment.specialty_id,
            "service_category": appointment.service_category,
            "from_date": from_date.isoformat() if from_date else None,
            "to_date": to_date.isoformat() if to_date else None,
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post("/recommendations", json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Scoring service request failed: {e}")
            raise ScoringServiceUnavailable(f"Scoring service request failed: {e}") from e

        items = data.get("recommendations", []) if isinstance(data, dict) else data
        try:
            return _candidate_list.validate_python(items)
        except ValidationError as e:
            logger.error(f"Scoring service returned malformed candidates: {e}")
            raise ScoringServiceUnavailable("Scoring service returned malformed candidates") from e


class RecommendationService:
    """Service class for slot recommendations."""

    def __init__(self, db: AsyncSession, scoring_client: ScoringClient | None = None):
        self.db = db
        self.scoring_client = scoring_client or ScoringClient()

    async def recommend(
        self,
        appointment_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> tuple[str, list[RankedSlot]]:
        """Ranked slots for an appointment, predictive first, regular as fallback."""
        appointment = await AppointmentService(self.db).get_appointment(appointment_id)

        if self.scoring_client.enabled:
            try:
                candidates = await self.scoring_client.fetch_candidates(appointment, from_date, to_date)
                return "predictive", rank_candidates(candidates)
            except (ScoringServiceUnavailable, EmptyCandidateSet) as e:
                logger.warning("Falling back to regular slots for %s: %s", appointment_id, e.detail)

        free_slots = await AvailabilityService(self.db).get_free_slots(
            appointment.practitioner_id, from_date, to_date
        )
        candidates = regular_candidates(free_slots)
        return "regular", rank_candidates(candidates) if candidates else []
