"""Recommendation routes - Ranked slot suggestions."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter

from app.api.deps import DBSession
from app.schemas.recommendation import RankedSlot, RankRequest, RecommendationResponse
from app.services.recommendation_service import RecommendationService, rank_candidates

router = APIRouter()


@router.get("/{appointment_id}", response_model=RecommendationResponse)
async def get_recommendations(
    appointment_id: UUID,
    db: DBSession,
    from_date: date | None = None,
    to_date: date | None = None,
):
    """Ranked slots for an appointment; falls back to plain availability."""
    service = RecommendationService(db)
    source, ranked = await service.recommend(appointment_id, from_date, to_date)
    return RecommendationResponse(source=source, recommendations=ranked)


@router.post("/rank", response_model=list[RankedSlot])
async def rank(request: RankRequest):
    """Rank already-scored candidates."""
    return rank_candidates(request.candidates)
