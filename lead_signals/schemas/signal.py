from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from lead_signals.schemas.common import EventKind


class SignalEvent(BaseModel):
    """Normalised read projection of one source record."""

    model_config = ConfigDict(frozen=True)

    lead_id: UUID
    event_kind: EventKind
    occurred_at: datetime
    payload: Optional[str] = None


class LeadSnapshot(BaseModel):
    """The lead columns the engine reads from the lead master table."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    pipeline_status: str
    created_at: datetime
    updated_at: datetime
    industry: Optional[str] = None
    has_website: bool = False
    google_rating: Optional[float] = None
    google_review_count: Optional[int] = None


class DemoSnapshot(BaseModel):
    """Delivery state of one demo, as used by the follow-up rules."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    lead_id: Optional[UUID] = None
    email_sent_at: Optional[datetime] = None
    first_viewed_at: Optional[datetime] = None
