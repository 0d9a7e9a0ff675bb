from typing import Literal
from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class RecommendedSlot(BaseModel):
    """Candidate slot as scored by the predictive service."""
    slot_id: UUID
    schedule_id: UUID
    practitioner_id: str
    start: datetime
    end: datetime
    rule_score: float
    predicted_wait_time: float = Field(..., ge=0, description="Minutes")
    cancellation_risk: float = Field(..., ge=0, le=1)
    final_score: float
    reason: list[str] = Field(default_factory=list)


class RankedSlot(RecommendedSlot):
    """Recommended slot with its position after ranking."""
    rank: int
    top_pick: bool = False


class RankRequest(BaseModel):
    """Candidates to rank."""
    candidates: list[RecommendedSlot]


class RecommendationResponse(BaseModel):
    """Ranked recommendations and where the candidates came from."""
    source: Literal["predictive", "regular"]
    recommendations: list[RankedSlot]
