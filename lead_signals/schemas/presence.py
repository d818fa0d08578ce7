from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


def as_utc(value: datetime) -> datetime:
    """Timestamps without an offset are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PresenceState(BaseModel):
    """Whether a lead is interacting right now."""

    lead_id: UUID
    is_active: bool = False
    last_seen_at: Optional[datetime] = None


class PresenceReport(BaseModel):
    """Payload posted by the presence reporter.

    ``last_seen_at`` defaults to the server time of receipt; a value
    without an offset is read as UTC.
    """

    last_seen_at: Optional[datetime] = None

    @field_validator("last_seen_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None
