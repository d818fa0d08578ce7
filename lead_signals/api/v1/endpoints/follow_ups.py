from typing import Optional

from fastapi import APIRouter, Depends, Query

from lead_signals.schemas.follow_up import (
    FollowUpSuggestionsResponse,
    LeadIdSetResponse,
)
from lead_signals.services.follow_up import FollowUpQueryService
from lead_signals.api.deps import get_follow_up_service

router = APIRouter(prefix="/follow-ups", tags=["Follow-ups"])


@router.get("/lead-ids", response_model=LeadIdSetResponse)
async def follow_up_lead_ids(
    service: FollowUpQueryService = Depends(get_follow_up_service),
) -> LeadIdSetResponse:
    """Leads flagged by any follow-up rule."""
    return await service.follow_up_lead_ids()


@router.get("/suggestions", response_model=FollowUpSuggestionsResponse)
async def follow_up_suggestions(
    limit: Optional[int] = Query(None, ge=1, le=50, description="Max suggestions"),
    service: FollowUpQueryService = Depends(get_follow_up_service),
) -> FollowUpSuggestionsResponse:
    """Flagged leads ranked by urgency, oldest trigger first."""
    return await service.suggestions(limit)


@router.get("/recent-activity", response_model=LeadIdSetResponse)
async def recent_activity_lead_ids(
    service: FollowUpQueryService = Depends(get_follow_up_service),
) -> LeadIdSetResponse:
    """Leads with any activity, note, demo view or call in the last 48 hours."""
    return await service.recent_activity_lead_ids()
