"""Follow-up rules and the recent-activity scan.

Three rules run in order over every actionable lead; the first rule that
flags a lead wins and later rules skip it:

    R1  demo emailed more than 48h ago and never viewed
    R2  demo first viewed more than 24h ago with no activity since
    R3  lead older than 7 days, untouched and without activity for 7 days

Leads in a terminal pipeline status are removed before any rule runs.
Both scans are full reads recomputed on every call; results are only
cached as a fallback for when a later scan fails.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple
from uuid import UUID

from lead_signals.core import constants
from lead_signals.core.cache import (
    FOLLOW_UP_LEAD_IDS_KEY,
    FOLLOW_UP_SUGGESTIONS_KEY,
    RECENT_ACTIVITY_LEAD_IDS_KEY,
    CacheService,
)
from lead_signals.core.config import settings
from lead_signals.core.exceptions import OrphanReferenceError, SourceUnavailableError
from lead_signals.repositories.lead_repository import DemoRepository, LeadRepository
from lead_signals.repositories.signal_sources import (
    ActivityRepository,
    CallLogRepository,
    DemoViewRepository,
    NoteRepository,
)
from lead_signals.schemas.common import FollowUpReason
from lead_signals.schemas.follow_up import (
    FollowUpFlag,
    FollowUpScan,
    FollowUpSuggestionsResponse,
    LeadIdSetResponse,
)
from lead_signals.schemas.signal import DemoSnapshot, LeadSnapshot
from lead_signals.services.fan_out import fan_out

logger = logging.getLogger(__name__)

# reason -> (label, suggestion, urgency)
_REASONS: Dict[FollowUpReason, Tuple[str, str, int]] = {
    FollowUpReason.demo_not_viewed: (
        "Demo not viewed (48h)",
        "Follow up to confirm they saw the demo",
        3,
    ),
    FollowUpReason.demo_viewed_no_reply: (
        "Demo viewed, no reply (24h)",
        "Reach out to answer questions after demo view",
        2,
    ),
    FollowUpReason.lead_inactive: (
        "No activity (7 days)",
        "Re-engage inactive lead",
        1,
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _flag(
    reason: FollowUpReason,
    lead_id: UUID,
    triggered_at: datetime,
    demo_id: Optional[UUID] = None,
) -> FollowUpFlag:
    label, suggestion, urgency = _REASONS[reason]
    return FollowUpFlag(
        lead_id=lead_id,
        reason=reason,
        reason_label=label,
        suggestion_text=suggestion,
        urgency=urgency,
        triggered_at=triggered_at,
        demo_id=demo_id,
    )


def _require_lead(lead_id: UUID, known: Mapping[UUID, LeadSnapshot]) -> LeadSnapshot:
    lead = known.get(lead_id)
    if lead is None:
        raise OrphanReferenceError(lead_id)
    return lead


def evaluate_follow_up_rules(
    leads: Iterable[LeadSnapshot],
    demos: Iterable[DemoSnapshot],
    latest_activity: Mapping[UUID, datetime],
    now: datetime,
) -> FollowUpScan:
    """Single deterministic R1 -> R2 -> R3 pass.

    *latest_activity* maps lead ids to their most recent activity time.
    Demos pointing at unknown leads are skipped and counted.
    """
    known = {lead.id: lead for lead in leads}
    actionable = [
        lead
        for lead in known.values()
        if lead.pipeline_status not in constants.TERMINAL_STATUSES
    ]
    actionable_ids = {lead.id for lead in actionable}

    orphans = 0
    candidate_demos: List[DemoSnapshot] = []
    for demo in demos:
        if demo.lead_id is None:
            continue
        try:
            _require_lead(demo.lead_id, known)
        except OrphanReferenceError as exc:
            orphans += 1
            logger.debug("Skipping demo %s: %s", demo.id, exc.detail)
            continue
        if demo.lead_id in actionable_ids:
            candidate_demos.append(demo)

    flags: Dict[UUID, FollowUpFlag] = {}

    # R1: demo sent, not viewed
    for demo in candidate_demos:
        if demo.lead_id in flags:
            continue
        if (
            demo.email_sent_at is not None
            and demo.first_viewed_at is None
            and now - demo.email_sent_at > constants.DEMO_NOT_VIEWED_WINDOW
        ):
            flags[demo.lead_id] = _flag(
                FollowUpReason.demo_not_viewed, demo.lead_id, demo.email_sent_at, demo.id
            )

    # R2: demo viewed, no reply
    for demo in candidate_demos:
        if demo.lead_id in flags:
            continue
        viewed_at = demo.first_viewed_at
        if viewed_at is None or now - viewed_at <= constants.DEMO_NO_REPLY_WINDOW:
            continue
        last_activity = latest_activity.get(demo.lead_id)
        if last_activity is None or last_activity <= viewed_at:
            flags[demo.lead_id] = _flag(
                FollowUpReason.demo_viewed_no_reply, demo.lead_id, viewed_at, demo.id
            )

    # R3: lead inactive
    window = constants.LEAD_INACTIVE_WINDOW
    for lead in actionable:
        if lead.id in flags:
            continue
        last_activity = latest_activity.get(lead.id)
        if (
            now - lead.created_at > window
            and (last_activity is None or now - last_activity > window)
            and now - lead.updated_at > window
        ):
            flags[lead.id] = _flag(
                FollowUpReason.lead_inactive,
                lead.id,
                last_activity or lead.updated_at,
            )

    if orphans:
        logger.info("Follow-up scan skipped %d orphaned demo reference(s)", orphans)
    return FollowUpScan(flags=list(flags.values()), orphans_skipped=orphans, evaluated_at=now)


def rank_suggestions(flags: Iterable[FollowUpFlag], limit: int) -> List[FollowUpFlag]:
    """Most urgent first, then oldest trigger first."""
    ordered = sorted(
        flags, key=lambda f: (-f.urgency, f.triggered_at, str(f.lead_id))
    )
    return ordered[:limit]


class FollowUpRuleEngine:
    """Runs the full-fleet scans behind the follow-up queries."""

    def __init__(
        self,
        lead_repo: LeadRepository,
        demo_repo: DemoRepository,
        activities: ActivityRepository,
        notes: NoteRepository,
        demo_views: DemoViewRepository,
        call_logs: CallLogRepository,
        *,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._lead_repo = lead_repo
        self._demo_repo = demo_repo
        self._activities = activities
        self._notes = notes
        self._demo_views = demo_views
        self._call_logs = call_logs
        self._timeout = (
            timeout if timeout is not None else settings.SOURCE_QUERY_TIMEOUT_SECONDS
        )
        self._clock = clock

    async def scan(self) -> FollowUpScan:
        """Read leads, demos and activities concurrently, then apply R1-R3.

        All three reads are required: a missing activity history would
        turn every lead into a false R2/R3 positive.
        """
        now = self._clock()
        outcome = await fan_out(
            {
                constants.SOURCE_LEADS: self._lead_repo.list_all(),
                constants.SOURCE_DEMOS: self._demo_repo.list_linked(),
                constants.SOURCE_ACTIVITIES: self._activities.latest_by_lead(),
            },
            timeout=self._timeout,
        )
        if outcome.failures:
            raise outcome.failures[outcome.degraded_sources[0]]

        return evaluate_follow_up_rules(
            outcome.get(constants.SOURCE_LEADS),
            outcome.get(constants.SOURCE_DEMOS),
            outcome.get(constants.SOURCE_ACTIVITIES),
            now,
        )

    async def get_follow_up_lead_ids(self) -> Set[UUID]:
        return (await self.scan()).lead_ids

    async def scan_recent_activity(self) -> Tuple[Set[UUID], List[str], datetime]:
        """Leads with an activity, note, demo view or call in the last 48h.

        Event sources degrade independently; only the lead read (needed
        to drop orphaned references) is required.
        """
        now = self._clock()
        since = now - constants.RECENT_ACTIVITY_WINDOW
        outcome = await fan_out(
            {
                constants.SOURCE_LEADS: self._lead_repo.list_all(),
                constants.SOURCE_ACTIVITIES: self._activities.fetch_events(since=since),
                constants.SOURCE_NOTES: self._notes.fetch_events(since=since),
                constants.SOURCE_DEMO_VIEWS: self._demo_views.fetch_events(since=since),
                constants.SOURCE_CALL_LOGS: self._call_logs.fetch_events(since=since),
            },
            timeout=self._timeout,
        )
        if constants.SOURCE_LEADS in outcome.failures:
            raise outcome.failures[constants.SOURCE_LEADS]

        known = {lead.id for lead in outcome.get(constants.SOURCE_LEADS)}
        lead_ids: Set[UUID] = set()
        orphans = 0
        for name, events in outcome.results.items():
            if name == constants.SOURCE_LEADS:
                continue
            for event in events:
                if event.lead_id in known:
                    lead_ids.add(event.lead_id)
                else:
                    orphans += 1
        if orphans:
            logger.debug("Recent-activity scan skipped %d orphaned event(s)", orphans)
        return lead_ids, outcome.degraded_sources, now

    async def get_recent_activity_lead_ids(self) -> Set[UUID]:
        lead_ids, _, _ = await self.scan_recent_activity()
        return lead_ids


class FollowUpQueryService:
    """Response-shaped follow-up queries with a last-known fallback.

    Every successful scan is remembered in the cache; if a later scan
    hits ``SourceUnavailableError`` the remembered result is served with
    ``stale=True``.  With nothing remembered the error propagates.
    """

    def __init__(
        self,
        engine: FollowUpRuleEngine,
        cache: Optional[CacheService] = None,
        *,
        cache_ttl: Optional[int] = None,
        suggestion_limit: Optional[int] = None,
    ) -> None:
        self._engine = engine
        self._cache = cache or CacheService()
        self._ttl = cache_ttl if cache_ttl is not None else settings.FOLLOW_UP_CACHE_TTL
        self._limit = suggestion_limit or settings.FOLLOW_UP_SUGGESTION_LIMIT

    async def follow_up_lead_ids(self) -> LeadIdSetResponse:
        try:
            scan = await self._engine.scan()
        except SourceUnavailableError:
            cached = await self._cache.load_lead_ids(FOLLOW_UP_LEAD_IDS_KEY)
            if cached is None:
                raise
            logger.warning("Serving last-known follow-up set")
            lead_ids, evaluated_at = cached
            return LeadIdSetResponse(
                lead_ids=sorted(lead_ids, key=str), evaluated_at=evaluated_at, stale=True
            )

        await self._cache.store_lead_ids(
            FOLLOW_UP_LEAD_IDS_KEY, scan.lead_ids, scan.evaluated_at, ttl=self._ttl
        )
        return LeadIdSetResponse(
            lead_ids=sorted(scan.lead_ids, key=str), evaluated_at=scan.evaluated_at
        )

    async def suggestions(self, limit: Optional[int] = None) -> FollowUpSuggestionsResponse:
        limit = limit or self._limit
        try:
            scan = await self._engine.scan()
        except SourceUnavailableError:
            cached = await self._cache.get_json(FOLLOW_UP_SUGGESTIONS_KEY)
            if cached is None:
                raise
            logger.warning("Serving last-known follow-up suggestions")
            response = FollowUpSuggestionsResponse.model_validate(cached)
            response.suggestions = response.suggestions[:limit]
            response.stale = True
            return response

        response = FollowUpSuggestionsResponse(
            suggestions=rank_suggestions(scan.flags, limit),
            evaluated_at=scan.evaluated_at,
        )
        await self._cache.set_json(
            FOLLOW_UP_SUGGESTIONS_KEY, response.model_dump(mode="json"), ttl=self._ttl
        )
        return response

    async def recent_activity_lead_ids(self) -> LeadIdSetResponse:
        try:
            lead_ids, degraded, evaluated_at = await self._engine.scan_recent_activity()
        except SourceUnavailableError:
            cached = await self._cache.load_lead_ids(RECENT_ACTIVITY_LEAD_IDS_KEY)
            if cached is None:
                raise
            logger.warning("Serving last-known recent-activity set")
            cached_ids, cached_at = cached
            return LeadIdSetResponse(
                lead_ids=sorted(cached_ids, key=str), evaluated_at=cached_at, stale=True
            )

        if not degraded:
            await self._cache.store_lead_ids(
                RECENT_ACTIVITY_LEAD_IDS_KEY, lead_ids, evaluated_at, ttl=self._ttl
            )
        return LeadIdSetResponse(
            lead_ids=sorted(lead_ids, key=str),
            evaluated_at=evaluated_at,
            degraded_sources=degraded,
        )
