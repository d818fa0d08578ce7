from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from lead_signals.schemas.common import FollowUpReason


class FollowUpFlag(BaseModel):
    """Why one lead currently needs human follow-up."""

    lead_id: UUID
    reason: FollowUpReason
    reason_label: str
    suggestion_text: str
    urgency: int  # higher = more urgent
    triggered_at: datetime
    demo_id: Optional[UUID] = None


class FollowUpScan(BaseModel):
    """Result of one full follow-up rule pass."""

    flags: List[FollowUpFlag] = Field(default_factory=list)
    orphans_skipped: int = 0
    evaluated_at: datetime

    @property
    def lead_ids(self) -> set:
        return {flag.lead_id for flag in self.flags}


class LeadIdSetResponse(BaseModel):
    lead_ids: List[UUID]
    evaluated_at: datetime
    stale: bool = Field(
        False, description="True when served from the last cached result"
    )
    degraded_sources: List[str] = Field(default_factory=list)


class FollowUpSuggestionsResponse(BaseModel):
    suggestions: List[FollowUpFlag]
    evaluated_at: datetime
    stale: bool = False
