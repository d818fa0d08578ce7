from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from lead_signals.core import constants
from lead_signals.models import Demo, Lead
from lead_signals.repositories.base import BaseRepository
from lead_signals.schemas.signal import DemoSnapshot, LeadSnapshot


class LeadRepository(BaseRepository):
    """Read queries against the ``leads`` master table."""

    source_name = constants.SOURCE_LEADS

    async def get_by_id(self, lead_id: UUID) -> Optional[LeadSnapshot]:
        """Return a single lead by primary key, or ``None``."""
        async with self._session() as db:
            result = await db.execute(select(Lead).where(Lead.id == lead_id))
            lead = result.scalar_one_or_none()
        return LeadSnapshot.model_validate(lead) if lead is not None else None

    async def list_all(self) -> List[LeadSnapshot]:
        """Full scan, terminal leads included."""
        async with self._session() as db:
            result = await db.execute(select(Lead))
            leads = result.scalars().all()
        return [LeadSnapshot.model_validate(lead) for lead in leads]

    async def list_actionable(self) -> List[LeadSnapshot]:
        """Every lead whose pipeline status is not terminal."""
        async with self._session() as db:
            result = await db.execute(
                select(Lead)
                .where(Lead.pipeline_status.notin_(constants.TERMINAL_STATUSES))
                .order_by(Lead.created_at.asc())
            )
            leads = result.scalars().all()
        return [LeadSnapshot.model_validate(lead) for lead in leads]


class DemoRepository(BaseRepository):
    """Read queries against the ``demos`` table."""

    source_name = constants.SOURCE_DEMOS

    async def list_linked(self) -> List[DemoSnapshot]:
        """All demos that reference a lead."""
        async with self._session() as db:
            result = await db.execute(
                select(Demo)
                .where(Demo.lead_id.is_not(None))
                .order_by(Demo.created_at.asc())
            )
            demos = result.scalars().all()
        return [DemoSnapshot.model_validate(demo) for demo in demos]
