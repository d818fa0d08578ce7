"""Pydantic schemas package – re-exports for convenience."""

from lead_signals.schemas.common import (
    PipelineStatus as PipelineStatus,
    EventKind as EventKind,
    ScoreBucket as ScoreBucket,
    FollowUpReason as FollowUpReason,
)

from lead_signals.schemas.signal import (
    SignalEvent as SignalEvent,
    LeadSnapshot as LeadSnapshot,
    DemoSnapshot as DemoSnapshot,
)

from lead_signals.schemas.last_seen import LastSeen as LastSeen

from lead_signals.schemas.presence import (
    PresenceState as PresenceState,
    PresenceReport as PresenceReport,
)

from lead_signals.schemas.score import (
    ScoreFactors as ScoreFactors,
    SubScores as SubScores,
    LeadScore as LeadScore,
    LeadScoreResponse as LeadScoreResponse,
    RecomputeRequest as RecomputeRequest,
    RecomputeSummary as RecomputeSummary,
    PriorityLead as PriorityLead,
)

from lead_signals.schemas.follow_up import (
    FollowUpFlag as FollowUpFlag,
    FollowUpScan as FollowUpScan,
    LeadIdSetResponse as LeadIdSetResponse,
    FollowUpSuggestionsResponse as FollowUpSuggestionsResponse,
)
