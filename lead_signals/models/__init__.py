from lead_signals.models.base import Base
from lead_signals.models.lead import Lead
from lead_signals.models.demo import Demo, DemoView
from lead_signals.models.events import EmailEvent, Note, CallLog, Activity
from lead_signals.models.lead_score import LeadScoreRow
from lead_signals.models.lead_presence import LeadPresence

# Tables created and migrated by this project; everything else is read-only
ENGINE_OWNED_TABLES = frozenset(
    {LeadScoreRow.__tablename__, LeadPresence.__tablename__}
)

__all__ = [
    "Base",
    "Lead",
    "Demo",
    "DemoView",
    "EmailEvent",
    "Note",
    "CallLog",
    "Activity",
    "LeadScoreRow",
    "LeadPresence",
    "ENGINE_OWNED_TABLES",
]
