from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LastSeen(BaseModel):
    """Most recent interaction across all sources for one lead.

    ``timestamp`` and ``interaction_label`` are both ``None`` when no
    source has ever recorded anything for the lead.
    """

    lead_id: UUID
    timestamp: Optional[datetime] = None
    interaction_label: Optional[str] = None
    degraded_sources: List[str] = Field(
        default_factory=list,
        description="Sources that failed or timed out and were treated as empty",
    )
