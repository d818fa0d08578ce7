import logging
from typing import Iterable, List, Optional
from uuid import UUID

from lead_signals.core import constants
from lead_signals.core.config import settings
from lead_signals.repositories.signal_sources import (
    CallLogRepository,
    DemoViewRepository,
    EmailEventRepository,
    NoteRepository,
)
from lead_signals.schemas.common import EventKind
from lead_signals.schemas.last_seen import LastSeen
from lead_signals.schemas.signal import SignalEvent
from lead_signals.services.fan_out import fan_out

logger = logging.getLogger(__name__)

# Exact-timestamp ties resolve to the earliest kind in this list.
_TIE_BREAK_ORDER: List[EventKind] = [
    EventKind.demo_view,
    EventKind.email_click,
    EventKind.email_open,
    EventKind.call,
    EventKind.note,
]


def pick_latest(events: Iterable[Optional[SignalEvent]]) -> Optional[SignalEvent]:
    """Return the most recent event, breaking exact ties by kind."""
    candidates = [e for e in events if e is not None]
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda e: (e.occurred_at, -_TIE_BREAK_ORDER.index(e.event_kind)),
    )


class LastSeenResolver:
    """Find a lead's most recent interaction across four sources.

    Demo views, email opens/clicks, notes and call logs are queried
    concurrently (one "latest" query each) and compared by timestamp
    only.  A source that fails is treated as empty and listed in
    ``degraded_sources``.
    """

    def __init__(
        self,
        demo_views: DemoViewRepository,
        email_events: EmailEventRepository,
        notes: NoteRepository,
        call_logs: CallLogRepository,
        timeout: Optional[float] = None,
    ) -> None:
        self._demo_views = demo_views
        self._email_events = email_events
        self._notes = notes
        self._call_logs = call_logs
        self._timeout = (
            timeout if timeout is not None else settings.SOURCE_QUERY_TIMEOUT_SECONDS
        )

    async def resolve(self, lead_id: UUID) -> LastSeen:
        outcome = await fan_out(
            {
                constants.SOURCE_DEMO_VIEWS: self._demo_views.latest_event(lead_id),
                constants.SOURCE_EMAIL_EVENTS: self._email_events.latest_event(
                    lead_id, kinds=(EventKind.email_open, EventKind.email_click)
                ),
                constants.SOURCE_NOTES: self._notes.latest_event(lead_id),
                constants.SOURCE_CALL_LOGS: self._call_logs.latest_event(lead_id),
            },
            timeout=self._timeout,
        )

        latest = pick_latest(outcome.results.values())
        if outcome.failures:
            logger.warning(
                "Last-seen for lead %s computed without %s",
                lead_id,
                ", ".join(outcome.degraded_sources),
            )
        if latest is None:
            return LastSeen(lead_id=lead_id, degraded_sources=outcome.degraded_sources)

        return LastSeen(
            lead_id=lead_id,
            timestamp=latest.occurred_at,
            interaction_label=constants.INTERACTION_LABELS[latest.event_kind],
            degraded_sources=outcome.degraded_sources,
        )
