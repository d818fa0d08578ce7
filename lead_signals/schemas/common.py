from enum import Enum


class PipelineStatus(str, Enum):
    new_lead = "new_lead"
    contact_attempted = "contact_attempted"
    demo_created = "demo_created"
    demo_sent = "demo_sent"
    demo_engaged = "demo_engaged"
    ready_to_buy = "ready_to_buy"
    customer_won = "customer_won"
    lost_closed = "lost_closed"


class EventKind(str, Enum):
    demo_view = "demo_view"
    email_open = "email_open"
    email_click = "email_click"
    email_reply = "email_reply"
    note = "note"
    call = "call"
    activity = "activity"


class ScoreBucket(str, Enum):
    hot = "hot"
    warm = "warm"
    lukewarm = "lukewarm"
    cold = "cold"


class FollowUpReason(str, Enum):
    demo_not_viewed = "demo_not_viewed"
    demo_viewed_no_reply = "demo_viewed_no_reply"
    lead_inactive = "lead_inactive"
