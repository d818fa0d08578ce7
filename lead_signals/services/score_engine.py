import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from lead_signals.core import constants
from lead_signals.core.config import settings
from lead_signals.core.exceptions import (
    InvariantViolationError,
    LeadNotFoundError,
    ScoreNotFoundError,
    SourceUnavailableError,
)
from lead_signals.repositories.lead_repository import LeadRepository
from lead_signals.repositories.score_repository import ScoreRepository
from lead_signals.repositories.signal_sources import (
    ActivityRepository,
    CallLogRepository,
    DemoViewRepository,
    EmailEventRepository,
    NoteRepository,
)
from lead_signals.schemas.common import EventKind, ScoreBucket
from lead_signals.schemas.score import (
    EngagementFactors,
    FitFactors,
    LeadScore,
    PriorityLead,
    RecomputeDegraded,
    RecomputeFailure,
    RecomputeSummary,
    ScoreFactors,
    UrgencyFactors,
)
from lead_signals.schemas.signal import LeadSnapshot, SignalEvent
from lead_signals.services.fan_out import fan_out
from lead_signals.services.scoring_policy import (
    DefaultScoringPolicy,
    ScoringPolicy,
    bucket_for,
    validate_sub_scores,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _whole_days(now: datetime, then: datetime) -> int:
    return max(0, (now - then).days)


def build_factors(
    lead: LeadSnapshot,
    events: Sequence[SignalEvent],
    now: datetime,
    target_industries: Iterable[str],
) -> ScoreFactors:
    """Aggregate one lead's events and lead row into ``ScoreFactors``.

    Events referencing another lead are ignored.
    """
    own = [e for e in events if e.lead_id == lead.id]
    activity_types = [e.payload for e in own if e.event_kind == EventKind.activity]

    demo_views = sum(1 for e in own if e.event_kind == EventKind.demo_view)
    email_opens = sum(1 for e in own if e.event_kind == EventKind.email_open)
    replied = any(e.event_kind == EventKind.email_reply for e in own) or any(
        t in constants.REPLY_ACTIVITY_TYPES for t in activity_types
    )

    last_interaction = max((e.occurred_at for e in own), default=lead.created_at)

    outreach = sum(1 for t in activity_types if t in constants.OUTREACH_ACTIVITY_TYPES)
    responses = sum(
        1 for t in activity_types if t in constants.RESPONSE_ACTIVITY_TYPES
    )

    return ScoreFactors(
        engagement=EngagementFactors(
            demo_views=demo_views,
            email_opens=email_opens,
            replies=1 if replied else 0,
            days_since_interaction=_whole_days(now, last_interaction),
        ),
        urgency=UrgencyFactors(
            days_in_status=_whole_days(now, lead.updated_at),
            follow_ups_ignored=max(0, outreach - responses),
            status_type=lead.pipeline_status,
        ),
        fit=FitFactors(
            industry_match=(lead.industry or "") in set(target_industries),
            has_website=bool(lead.has_website),
            has_reviews=(lead.google_review_count or 0) > 0,
            review_rating=lead.google_rating,
        ),
    )


class LeadScoreEngine:
    """Compute, persist and read lead scores.

    Scoring is explicit: reads return the last stored snapshot, however
    stale, and only ``recompute_lead`` / ``recompute_all`` write.  The
    weighting is delegated to an injected ``ScoringPolicy``.
    """

    def __init__(
        self,
        lead_repo: LeadRepository,
        score_repo: ScoreRepository,
        demo_views: DemoViewRepository,
        email_events: EmailEventRepository,
        notes: NoteRepository,
        call_logs: CallLogRepository,
        activities: ActivityRepository,
        policy: Optional[ScoringPolicy] = None,
        *,
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
        allow_partial: Optional[bool] = None,
        enabled: Optional[bool] = None,
        target_industries: Optional[Iterable[str]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._lead_repo = lead_repo
        self._score_repo = score_repo
        self._sources = {
            constants.SOURCE_DEMO_VIEWS: demo_views,
            constants.SOURCE_EMAIL_EVENTS: email_events,
            constants.SOURCE_NOTES: notes,
            constants.SOURCE_CALL_LOGS: call_logs,
            constants.SOURCE_ACTIVITIES: activities,
        }
        self._policy = policy or DefaultScoringPolicy()
        self._timeout = (
            timeout if timeout is not None else settings.SOURCE_QUERY_TIMEOUT_SECONDS
        )
        self._concurrency = max(1, concurrency or settings.SCORE_RECOMPUTE_CONCURRENCY)
        self._allow_partial = (
            allow_partial
            if allow_partial is not None
            else settings.SCORE_ALLOW_PARTIAL_SOURCES
        )
        self._enabled = enabled if enabled is not None else settings.LEAD_SCORING_ENABLED
        self._target_industries = frozenset(
            target_industries
            if target_industries is not None
            else settings.target_industries
        )
        self._clock = clock

    @property
    def policy(self) -> ScoringPolicy:
        return self._policy

    @property
    def enabled(self) -> bool:
        return self._enabled

    def compute(
        self, lead_id: UUID, factors: ScoreFactors, now: datetime
    ) -> LeadScore:
        """Pure scoring step; raises ``InvariantViolationError`` on bad output."""
        try:
            sub_scores = validate_sub_scores(self._policy.score(factors))
            bucket_for(sub_scores.overall_score)
        except InvariantViolationError:
            logger.error(
                "Policy %s produced an invalid score for lead %s",
                self._policy.name,
                lead_id,
                exc_info=True,
            )
            raise
        return LeadScore(
            lead_id=lead_id,
            factors=factors,
            last_calculated=now,
            **sub_scores.model_dump(),
        )

    async def gather_events(self, lead_id: UUID) -> Tuple[List[SignalEvent], List[str]]:
        """Fan out to all five sources; return events and degraded source names."""
        outcome = await fan_out(
            {
                name: source.fetch_events(lead_id)
                for name, source in self._sources.items()
            },
            timeout=self._timeout,
        )
        events: List[SignalEvent] = []
        for name in self._sources:
            events.extend(outcome.get(name, []))
        return events, outcome.degraded_sources

    async def score_lead(
        self, lead: LeadSnapshot, now: Optional[datetime] = None
    ) -> Tuple[LeadScore, List[str]]:
        """Score one lead without persisting it.

        Unless partial inputs are allowed, a degraded source fails the
        lead with ``SourceUnavailableError``.
        """
        now = now or self._clock()
        events, degraded = await self.gather_events(lead.id)
        if degraded and not self._allow_partial:
            raise SourceUnavailableError(
                degraded[0],
                f"Cannot score lead {lead.id}: {', '.join(degraded)} unavailable",
            )
        factors = build_factors(lead, events, now, self._target_industries)
        return self.compute(lead.id, factors, now), degraded

    async def get_score(self, lead_id: UUID) -> Optional[LeadScore]:
        return await self._score_repo.get_score(lead_id)

    async def list_priority(self, limit: int = 10) -> List[PriorityLead]:
        """Highest stored scores among actionable leads."""
        rows = await self._score_repo.list_priority(limit)
        return [
            PriorityLead(
                lead_id=score.lead_id,
                pipeline_status=status,
                overall_score=score.overall_score,
                bucket=bucket_for(score.overall_score),
                last_calculated=score.last_calculated,
            )
            for score, status in rows
        ]

    async def recompute_lead(self, lead_id: UUID) -> LeadScore:
        """Score one lead now and store it.

        With scoring disabled nothing is written and the stored snapshot
        is returned instead.
        """
        if not self._enabled:
            logger.info("Lead scoring is disabled; returning stored score")
            stored = await self._score_repo.get_score(lead_id)
            if stored is None:
                raise ScoreNotFoundError(f"Lead {lead_id} has not been scored")
            return stored

        lead = await self._lead_repo.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFoundError(f"Lead {lead_id} not found")
        score, degraded = await self.score_lead(lead)
        await self._score_repo.put_score(score)
        if degraded:
            logger.warning(
                "Lead %s scored without %s", lead_id, ", ".join(degraded)
            )
        return score

    async def recompute_all(
        self, lead_ids: Optional[Sequence[UUID]] = None
    ) -> RecomputeSummary:
        """Recompute every actionable lead (or the given subset).

        Leads are scored independently under a bounded worker pool.  A
        failing lead is reported and keeps its previous score; it never
        aborts the others.
        """
        started_at = self._clock()
        summary = RecomputeSummary(started_at=started_at)
        if not self._enabled:
            logger.info("Lead scoring is disabled; recompute skipped")
            summary.enabled = False
            summary.finished_at = started_at
            return summary

        leads = await self._lead_repo.list_actionable()
        if lead_ids is not None:
            wanted = set(lead_ids)
            leads = [lead for lead in leads if lead.id in wanted]
            for missing in wanted - {lead.id for lead in leads}:
                summary.failures.append(
                    RecomputeFailure(
                        lead_id=missing, reason="Lead not found or not actionable"
                    )
                )

        logger.info("Recomputing scores for %d lead(s)", len(leads))
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(lead: LeadSnapshot):
            async with semaphore:
                try:
                    score, degraded = await self.score_lead(lead, now=started_at)
                    await self._score_repo.put_score(score)
                except (SourceUnavailableError, InvariantViolationError) as exc:
                    logger.warning(
                        "Score recompute failed for lead %s: %s", lead.id, exc.detail
                    )
                    return lead.id, None, [], exc.detail
                except Exception as exc:
                    logger.warning(
                        "Score recompute failed for lead %s", lead.id, exc_info=True
                    )
                    return lead.id, None, [], str(exc) or exc.__class__.__name__
                return lead.id, score, degraded, None

        results = await asyncio.gather(*(run_one(lead) for lead in leads))

        for lead_id, score, degraded, reason in results:
            summary.processed += 1
            if score is None:
                summary.failures.append(RecomputeFailure(lead_id=lead_id, reason=reason))
                continue
            summary.succeeded += 1
            if degraded:
                summary.degraded.append(
                    RecomputeDegraded(lead_id=lead_id, sources=degraded)
                )
            if bucket_for(score.overall_score) == ScoreBucket.hot:
                summary.hot_lead_ids.append(lead_id)

        summary.finished_at = self._clock()
        logger.info(
            "Score recompute finished: %d/%d succeeded, %d failed, %d hot",
            summary.succeeded,
            summary.processed,
            len(summary.failures),
            len(summary.hot_lead_ids),
        )
        return summary
