import logging
from typing import Callable, Optional

from fastapi import Depends
from fastapi.requests import HTTPConnection
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from lead_signals.core.config import settings
from lead_signals.core.database import get_session_factory
from lead_signals.services.follow_up import FollowUpQueryService, FollowUpRuleEngine
from lead_signals.services.last_seen import LastSeenResolver
from lead_signals.services.presence import PresenceDetector, PresenceRegistry
from lead_signals.services.presence_feed import PresenceFeed
from lead_signals.services.score_engine import LeadScoreEngine

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., AsyncSession]


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def create_redis_client() -> Optional[Redis]:
    """Connect the process-wide Redis client, or return ``None`` if unreachable."""
    client = Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    try:
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – caching and presence push disabled")
        await client.aclose()
        return None


async def get_redis_client(connection: HTTPConnection) -> Optional[Redis]:
    """The client opened at start-up; ``None`` when Redis is unavailable."""
    return getattr(connection.app.state, "redis_client", None)


async def get_cache_service(
    redis_client: Redis = Depends(get_redis_client),
):
    """Build a :class:`CacheService` backed by the shared Redis client."""
    from lead_signals.core.cache import CacheService

    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Repository factory functions (each gets the shared session factory)
# ---------------------------------------------------------------------------


async def get_lead_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.lead_repository import LeadRepository

    return LeadRepository(session_factory)


async def get_demo_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.lead_repository import DemoRepository

    return DemoRepository(session_factory)


async def get_score_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.score_repository import ScoreRepository

    return ScoreRepository(session_factory)


async def get_presence_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.presence_repository import PresenceRepository

    return PresenceRepository(session_factory)


async def get_demo_view_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.signal_sources import DemoViewRepository

    return DemoViewRepository(session_factory)


async def get_email_event_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.signal_sources import EmailEventRepository

    return EmailEventRepository(session_factory)


async def get_note_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.signal_sources import NoteRepository

    return NoteRepository(session_factory)


async def get_call_log_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.signal_sources import CallLogRepository

    return CallLogRepository(session_factory)


async def get_activity_repo(
    session_factory: SessionFactory = Depends(get_session_factory),
):
    from lead_signals.repositories.signal_sources import ActivityRepository

    return ActivityRepository(session_factory)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_last_seen_resolver(
    demo_views=Depends(get_demo_view_repo),
    email_events=Depends(get_email_event_repo),
    notes=Depends(get_note_repo),
    call_logs=Depends(get_call_log_repo),
) -> LastSeenResolver:
    return LastSeenResolver(
        demo_views=demo_views,
        email_events=email_events,
        notes=notes,
        call_logs=call_logs,
    )


async def get_presence_detector(
    presence_repo=Depends(get_presence_repo),
    demo_views=Depends(get_demo_view_repo),
) -> PresenceDetector:
    return PresenceDetector(presence_repo=presence_repo, demo_views=demo_views)


async def get_presence_registry(connection: HTTPConnection) -> PresenceRegistry:
    """The process-wide registry created at application start-up."""
    return connection.app.state.presence_registry


async def get_presence_feed(
    redis_client: Redis = Depends(get_redis_client),
    registry: PresenceRegistry = Depends(get_presence_registry),
) -> PresenceFeed:
    return PresenceFeed(redis_client=redis_client, registry=registry)


async def get_score_engine(
    lead_repo=Depends(get_lead_repo),
    score_repo=Depends(get_score_repo),
    demo_views=Depends(get_demo_view_repo),
    email_events=Depends(get_email_event_repo),
    notes=Depends(get_note_repo),
    call_logs=Depends(get_call_log_repo),
    activities=Depends(get_activity_repo),
) -> LeadScoreEngine:
    return LeadScoreEngine(
        lead_repo=lead_repo,
        score_repo=score_repo,
        demo_views=demo_views,
        email_events=email_events,
        notes=notes,
        call_logs=call_logs,
        activities=activities,
    )


async def get_follow_up_engine(
    lead_repo=Depends(get_lead_repo),
    demo_repo=Depends(get_demo_repo),
    activities=Depends(get_activity_repo),
    notes=Depends(get_note_repo),
    demo_views=Depends(get_demo_view_repo),
    call_logs=Depends(get_call_log_repo),
) -> FollowUpRuleEngine:
    return FollowUpRuleEngine(
        lead_repo=lead_repo,
        demo_repo=demo_repo,
        activities=activities,
        notes=notes,
        demo_views=demo_views,
        call_logs=call_logs,
    )


async def get_follow_up_service(
    engine: FollowUpRuleEngine = Depends(get_follow_up_engine),
    cache=Depends(get_cache_service),
) -> FollowUpQueryService:
    """Build a :class:`FollowUpQueryService` with last-known fallback."""
    return FollowUpQueryService(engine=engine, cache=cache)
