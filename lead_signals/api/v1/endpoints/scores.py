from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from lead_signals.core.exceptions import ScoreNotFoundError
from lead_signals.core.rate_limit import limiter
from lead_signals.schemas.score import (
    LeadScore,
    LeadScoreResponse,
    PriorityLead,
    RecomputeRequest,
    RecomputeSummary,
)
from lead_signals.services.score_engine import LeadScoreEngine
from lead_signals.services.scoring_policy import bucket_for
from lead_signals.api.deps import get_score_engine

router = APIRouter(tags=["Scores"])


def _with_bucket(score: LeadScore) -> LeadScoreResponse:
    return LeadScoreResponse(**score.model_dump(), bucket=bucket_for(score.overall_score))


@router.get("/leads/{lead_id}/score", response_model=LeadScoreResponse)
async def get_lead_score(
    lead_id: UUID,
    engine: LeadScoreEngine = Depends(get_score_engine),
) -> LeadScoreResponse:
    """Last stored score snapshot.

    Scores are never computed on read; ``last_calculated`` tells how old
    the snapshot is.
    """
    score = await engine.get_score(lead_id)
    if score is None:
        raise ScoreNotFoundError(f"Lead {lead_id} has not been scored")
    return _with_bucket(score)


@router.post("/leads/{lead_id}/score/recompute", response_model=LeadScoreResponse)
async def recompute_lead_score(
    lead_id: UUID,
    engine: LeadScoreEngine = Depends(get_score_engine),
) -> LeadScoreResponse:
    """Recompute and store one lead's score."""
    return _with_bucket(await engine.recompute_lead(lead_id))


@router.post("/scores/recompute", response_model=RecomputeSummary)
@limiter.limit("5/minute")
async def recompute_scores(
    request: Request,
    body: Optional[RecomputeRequest] = None,
    engine: LeadScoreEngine = Depends(get_score_engine),
) -> RecomputeSummary:
    """Recompute every actionable lead, or the ``lead_ids`` subset.

    Rate-limited to 5 requests/minute per IP; a fleet run is expensive.
    Per-lead failures are reported in the summary, not as an error.
    """
    lead_ids = body.lead_ids if body is not None else None
    return await engine.recompute_all(lead_ids)


@router.get("/scores/priority", response_model=List[PriorityLead])
async def priority_leads(
    limit: int = Query(10, ge=1, le=100, description="Max leads to return"),
    engine: LeadScoreEngine = Depends(get_score_engine),
) -> List[PriorityLead]:
    """Highest-scoring actionable leads, best first."""
    return await engine.list_priority(limit)
