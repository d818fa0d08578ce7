from datetime import timedelta
from typing import Dict, FrozenSet

from lead_signals.schemas.common import EventKind, PipelineStatus

PIPELINE_STATUSES: FrozenSet[str] = frozenset(s.value for s in PipelineStatus)

# Leads in these statuses are no longer actionable. ``closed_lost`` and
# ``closed_won`` are older spellings still present in imported rows.
TERMINAL_STATUSES: FrozenSet[str] = frozenset(
    {
        PipelineStatus.lost_closed.value,
        PipelineStatus.customer_won.value,
        "closed_lost",
        "closed_won",
    }
)

ACTIVE_STATUSES: FrozenSet[str] = PIPELINE_STATUSES - TERMINAL_STATUSES

# Follow-up rule windows
DEMO_NOT_VIEWED_WINDOW: timedelta = timedelta(hours=48)
DEMO_NO_REPLY_WINDOW: timedelta = timedelta(hours=24)
LEAD_INACTIVE_WINDOW: timedelta = timedelta(days=7)
RECENT_ACTIVITY_WINDOW: timedelta = timedelta(hours=48)

# Presence
ACTIVE_THRESHOLD: timedelta = timedelta(minutes=2)

# Email event types that count as a signal, keyed by raw ``event_type``
EMAIL_EVENT_KINDS: Dict[str, EventKind] = {
    "open": EventKind.email_open,
    "click": EventKind.email_click,
    "reply": EventKind.email_reply,
}

# Last-seen labels, keyed by the kind of the winning event
INTERACTION_LABELS: Dict[EventKind, str] = {
    EventKind.demo_view: "Viewed demo",
    EventKind.email_open: "Opened email",
    EventKind.email_click: "Clicked email link",
    EventKind.note: "Note added",
    EventKind.call: "Call logged",
}

# Activity ``type`` values used by the score aggregation
REPLY_ACTIVITY_TYPES: FrozenSet[str] = frozenset({"email-reply", "sms-reply"})
OUTREACH_ACTIVITY_TYPES: FrozenSet[str] = frozenset({"email", "sms", "call"})
RESPONSE_ACTIVITY_TYPES: FrozenSet[str] = frozenset(
    {"email-reply", "sms-reply", "call-answered"}
)

# Score buckets: inclusive lower bound, highest first
BUCKET_LOWER_BOUNDS: Dict[str, float] = {
    "hot": 80.0,
    "warm": 60.0,
    "lukewarm": 40.0,
    "cold": 0.0,
}

MIN_SCORE: float = 0.0
MAX_SCORE: float = 100.0

# Source names as reported in SourceUnavailable warnings
SOURCE_DEMO_VIEWS = "demo_views"
SOURCE_EMAIL_EVENTS = "email_events"
SOURCE_NOTES = "notes"
SOURCE_CALL_LOGS = "call_logs"
SOURCE_ACTIVITIES = "activities"
SOURCE_LEADS = "leads"
SOURCE_DEMOS = "demos"
SOURCE_PRESENCE = "lead_presence"
