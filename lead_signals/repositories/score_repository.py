from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from lead_signals.core import constants
from lead_signals.models import Lead, LeadScoreRow
from lead_signals.repositories.base import BaseRepository
from lead_signals.schemas.score import LeadScore, ScoreFactors


class ScoreRepository(BaseRepository):
    """Encapsulates reads and upserts against ``lead_scores``."""

    source_name = "lead_scores"

    @staticmethod
    def _to_schema(row: LeadScoreRow) -> LeadScore:
        return LeadScore(
            lead_id=row.lead_id,
            overall_score=float(row.overall_score),
            engagement_score=float(row.engagement_score),
            urgency_score=float(row.urgency_score),
            fit_score=float(row.fit_score),
            factors=ScoreFactors.model_validate(row.score_factors),
            last_calculated=row.last_calculated,
        )

    async def get_score(self, lead_id: UUID) -> Optional[LeadScore]:
        """Return the last computed snapshot, however stale, or ``None``."""
        async with self._session() as db:
            result = await db.execute(
                select(LeadScoreRow).where(LeadScoreRow.lead_id == lead_id)
            )
            row = result.scalar_one_or_none()
        return self._to_schema(row) if row is not None else None

    async def put_score(self, score: LeadScore) -> None:
        """Idempotent overwrite of the lead's current score row."""
        values = {
            "lead_id": score.lead_id,
            "overall_score": score.overall_score,
            "engagement_score": score.engagement_score,
            "urgency_score": score.urgency_score,
            "fit_score": score.fit_score,
            "score_factors": score.factors.model_dump(mode="json"),
            "last_calculated": score.last_calculated,
        }
        stmt = insert(LeadScoreRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[LeadScoreRow.lead_id],
            set_={k: stmt.excluded[k] for k in values if k != "lead_id"},
        )
        async with self._session() as db:
            await db.execute(stmt)
            await db.commit()

    async def list_priority(self, limit: int = 10) -> List[tuple]:
        """Return ``(LeadScore, pipeline_status)`` pairs, best first.

        Only actionable leads are included.
        """
        query = (
            select(LeadScoreRow, Lead.pipeline_status)
            .join(Lead, Lead.id == LeadScoreRow.lead_id)
            .where(Lead.pipeline_status.notin_(constants.TERMINAL_STATUSES))
            .order_by(LeadScoreRow.overall_score.desc())
            .limit(limit)
        )
        async with self._session() as db:
            result = await db.execute(query)
            rows = result.all()
        return [(self._to_schema(row), status) for row, status in rows]
