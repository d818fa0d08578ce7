from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from lead_signals.core import constants
from lead_signals.models import LeadPresence
from lead_signals.repositories.base import BaseRepository


class PresenceRepository(BaseRepository):
    """Encapsulates queries against the ``lead_presence`` table."""

    source_name = constants.SOURCE_PRESENCE

    async def get_last_seen_at(self, lead_id: UUID) -> Optional[datetime]:
        async with self._session() as db:
            result = await db.execute(
                select(LeadPresence.last_seen_at).where(
                    LeadPresence.lead_id == lead_id
                )
            )
            return result.scalar_one_or_none()

    async def touch(self, lead_id: UUID, last_seen_at: datetime) -> None:
        """Upsert the presence record; an older report never rewinds it."""
        stmt = insert(LeadPresence).values(lead_id=lead_id, last_seen_at=last_seen_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=[LeadPresence.lead_id],
            set_={
                "last_seen_at": func.greatest(
                    LeadPresence.last_seen_at, stmt.excluded.last_seen_at
                )
            },
        )
        async with self._session() as db:
            await db.execute(stmt)
            await db.commit()
