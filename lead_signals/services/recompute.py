import logging
from typing import Callable, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from lead_signals.repositories import (
    ActivityRepository,
    CallLogRepository,
    DemoViewRepository,
    EmailEventRepository,
    LeadRepository,
    NoteRepository,
    ScoreRepository,
)
from lead_signals.schemas.score import RecomputeSummary
from lead_signals.services.score_engine import LeadScoreEngine
from lead_signals.services.scoring_policy import ScoringPolicy

logger = logging.getLogger(__name__)


def build_score_engine(
    session_factory: Callable[..., AsyncSession],
    policy: Optional[ScoringPolicy] = None,
) -> LeadScoreEngine:
    """Wire a ``LeadScoreEngine`` whose repositories share *session_factory*."""
    return LeadScoreEngine(
        lead_repo=LeadRepository(session_factory),
        score_repo=ScoreRepository(session_factory),
        demo_views=DemoViewRepository(session_factory),
        email_events=EmailEventRepository(session_factory),
        notes=NoteRepository(session_factory),
        call_logs=CallLogRepository(session_factory),
        activities=ActivityRepository(session_factory),
        policy=policy,
    )


async def recompute_lead_scores(
    session_factory: Callable[..., AsyncSession],
    lead_ids: Optional[Sequence[UUID]] = None,
) -> RecomputeSummary:
    """One-shot: recompute and store scores for every actionable lead.

    Parameters:
        session_factory: An async context-manager callable that yields
            an ``AsyncSession`` (e.g. ``AsyncSessionLocal``).
        lead_ids: Optional subset to recompute instead of the whole fleet.

    Returns the ``RecomputeSummary`` of the run.
    """
    engine = build_score_engine(session_factory)
    summary = await engine.recompute_all(lead_ids)
    for lead_id in summary.hot_lead_ids:
        logger.info("Lead %s is hot", lead_id)
    return summary
