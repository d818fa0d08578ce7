"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains aggregation and rule logic.
"""

from lead_signals.repositories.lead_repository import LeadRepository, DemoRepository
from lead_signals.repositories.score_repository import ScoreRepository
from lead_signals.repositories.presence_repository import PresenceRepository
from lead_signals.repositories.signal_sources import (
    SignalSourceRepository,
    DemoViewRepository,
    EmailEventRepository,
    NoteRepository,
    CallLogRepository,
    ActivityRepository,
)

__all__ = [
    "LeadRepository",
    "DemoRepository",
    "ScoreRepository",
    "PresenceRepository",
    "SignalSourceRepository",
    "DemoViewRepository",
    "EmailEventRepository",
    "NoteRepository",
    "CallLogRepository",
    "ActivityRepository",
]
