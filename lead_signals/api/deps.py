"""API-layer dependency functions.

Re-exports all dependency factories from ``lead_signals.dependencies`` so
that endpoint modules only need to import from ``lead_signals.api.deps``.
"""

from lead_signals.dependencies import (
    # Repository factories
    get_lead_repo,
    get_demo_repo,
    get_score_repo,
    get_presence_repo,
    get_demo_view_repo,
    get_email_event_repo,
    get_note_repo,
    get_call_log_repo,
    get_activity_repo,
    # Service factories
    get_last_seen_resolver,
    get_presence_detector,
    get_presence_registry,
    get_presence_feed,
    get_score_engine,
    get_follow_up_engine,
    get_follow_up_service,
    # Redis
    get_redis_client,
    get_cache_service,
)

__all__ = [
    "get_lead_repo",
    "get_demo_repo",
    "get_score_repo",
    "get_presence_repo",
    "get_demo_view_repo",
    "get_email_event_repo",
    "get_note_repo",
    "get_call_log_repo",
    "get_activity_repo",
    "get_last_seen_resolver",
    "get_presence_detector",
    "get_presence_registry",
    "get_presence_feed",
    "get_score_engine",
    "get_follow_up_engine",
    "get_follow_up_service",
    "get_redis_client",
    "get_cache_service",
]
