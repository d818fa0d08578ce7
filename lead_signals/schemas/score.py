from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from lead_signals.schemas.common import ScoreBucket


class EngagementFactors(BaseModel):
    demo_views: int = Field(0, ge=0)
    email_opens: int = Field(0, ge=0)
    replies: int = Field(0, ge=0)
    days_since_interaction: int = Field(0, ge=0)


class UrgencyFactors(BaseModel):
    days_in_status: int = Field(0, ge=0)
    follow_ups_ignored: int = Field(0, ge=0)
    status_type: str


class FitFactors(BaseModel):
    industry_match: bool = False
    has_website: bool = False
    has_reviews: bool = False
    review_rating: Optional[float] = None


class ScoreFactors(BaseModel):
    """Audit snapshot of every input that produced a score."""

    engagement: EngagementFactors
    urgency: UrgencyFactors
    fit: FitFactors


class SubScores(BaseModel):
    engagement_score: float
    urgency_score: float
    fit_score: float
    overall_score: float


class LeadScore(BaseModel):
    """Current score row for one lead (overwritten on recompute)."""

    lead_id: UUID
    overall_score: float = Field(..., ge=0, le=100)
    engagement_score: float = Field(..., ge=0, le=100)
    urgency_score: float = Field(..., ge=0, le=100)
    fit_score: float = Field(..., ge=0, le=100)
    factors: ScoreFactors
    last_calculated: datetime


class LeadScoreResponse(LeadScore):
    bucket: ScoreBucket


class RecomputeRequest(BaseModel):
    """Optional subset for a fleet recompute; all actionable leads when omitted."""

    lead_ids: Optional[List[UUID]] = Field(None, max_length=1000)


class RecomputeFailure(BaseModel):
    lead_id: UUID
    reason: str


class RecomputeDegraded(BaseModel):
    lead_id: UUID
    sources: List[str]


class RecomputeSummary(BaseModel):
    """Aggregate outcome of a fleet-wide recompute."""

    enabled: bool = True
    processed: int = 0
    succeeded: int = 0
    failures: List[RecomputeFailure] = Field(default_factory=list)
    degraded: List[RecomputeDegraded] = Field(default_factory=list)
    hot_lead_ids: List[UUID] = Field(default_factory=list)
    started_at: datetime
    finished_at: Optional[datetime] = None


class PriorityLead(BaseModel):
    lead_id: UUID
    pipeline_status: str
    overall_score: float
    bucket: ScoreBucket
    last_calculated: datetime
