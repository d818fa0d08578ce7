"""Read-only adapters over the five event collections.

Each adapter answers ``(lead_id | all, since) -> [SignalEvent]``.  An
empty list is a successful answer; a failed query raises
``SourceUnavailableError``.  Rows whose lead reference is NULL are not
signals and are dropped here.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, select

from lead_signals.core import constants
from lead_signals.models import Activity, CallLog, DemoView, EmailEvent, Note
from lead_signals.repositories.base import BaseRepository
from lead_signals.schemas.common import EventKind
from lead_signals.schemas.signal import SignalEvent

logger = logging.getLogger(__name__)


class SignalSourceRepository(BaseRepository):
    """Shared query plumbing for one event collection."""

    model: Any = None
    lead_column: str = "lead_id"
    event_kind: EventKind = EventKind.activity

    @property
    def _lead_ref(self):
        return getattr(self.model, self.lead_column)

    def _filters(self, kinds: Optional[Iterable[EventKind]]) -> list:
        return []

    def _to_event(self, row: Any) -> Optional[SignalEvent]:
        return SignalEvent(
            lead_id=getattr(row, self.lead_column),
            event_kind=self.event_kind,
            occurred_at=row.created_at,
            payload=self._payload(row),
        )

    def _payload(self, row: Any) -> Optional[str]:
        return None

    async def fetch_events(
        self,
        lead_id: Optional[UUID] = None,
        since: Optional[datetime] = None,
        *,
        kinds: Optional[Iterable[EventKind]] = None,
        latest_only: bool = False,
    ) -> List[SignalEvent]:
        """Return events newest first.

        ``lead_id=None`` is a full scan across all leads; ``since`` is an
        inclusive lower bound on the creation time.
        """
        query = select(self.model).where(
            self._lead_ref.is_not(None), *self._filters(kinds)
        )
        if lead_id is not None:
            query = query.where(self._lead_ref == lead_id)
        if since is not None:
            query = query.where(self.model.created_at >= since)
        query = query.order_by(self.model.created_at.desc())
        if latest_only:
            query = query.limit(1)

        async with self._session() as db:
            result = await db.execute(query)
            rows = result.scalars().all()

        events = (self._to_event(row) for row in rows)
        return [event for event in events if event is not None]

    async def latest_event(
        self,
        lead_id: UUID,
        since: Optional[datetime] = None,
        *,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> Optional[SignalEvent]:
        """Return the single most recent event for *lead_id*, or ``None``."""
        events = await self.fetch_events(
            lead_id, since, kinds=kinds, latest_only=True
        )
        return events[0] if events else None


class DemoViewRepository(SignalSourceRepository):
    source_name = constants.SOURCE_DEMO_VIEWS
    model = DemoView
    event_kind = EventKind.demo_view

    def _payload(self, row: DemoView) -> Optional[str]:
        if row.progress_percent is None:
            return None
        return f"{row.progress_percent}%"


class EmailEventRepository(SignalSourceRepository):
    """Email events; only opens, clicks and replies are signals."""

    source_name = constants.SOURCE_EMAIL_EVENTS
    model = EmailEvent

    def _filters(self, kinds: Optional[Iterable[EventKind]]) -> list:
        wanted = set(kinds) if kinds is not None else None
        event_types = [
            raw
            for raw, kind in constants.EMAIL_EVENT_KINDS.items()
            if wanted is None or kind in wanted
        ]
        return [EmailEvent.event_type.in_(event_types)]

    def _to_event(self, row: EmailEvent) -> Optional[SignalEvent]:
        kind = constants.EMAIL_EVENT_KINDS.get(row.event_type)
        if kind is None:
            return None
        return SignalEvent(
            lead_id=row.lead_id,
            event_kind=kind,
            occurred_at=row.created_at,
            payload=row.url,
        )


class NoteRepository(SignalSourceRepository):
    source_name = constants.SOURCE_NOTES
    model = Note
    lead_column = "related_to_id"
    event_kind = EventKind.note

    def _filters(self, kinds: Optional[Iterable[EventKind]]) -> list:
        return [Note.related_to_type == "lead"]

    def _payload(self, row: Note) -> Optional[str]:
        return row.content


class CallLogRepository(SignalSourceRepository):
    source_name = constants.SOURCE_CALL_LOGS
    model = CallLog
    event_kind = EventKind.call

    def _payload(self, row: CallLog) -> Optional[str]:
        return row.summary


class ActivityRepository(SignalSourceRepository):
    """CRM activities; the payload carries the activity ``type``."""

    source_name = constants.SOURCE_ACTIVITIES
    model = Activity
    lead_column = "related_to_id"
    event_kind = EventKind.activity

    def _filters(self, kinds: Optional[Iterable[EventKind]]) -> list:
        return [Activity.related_to_type == "lead"]

    def _payload(self, row: Activity) -> Optional[str]:
        return row.type

    async def latest_by_lead(
        self, since: Optional[datetime] = None
    ) -> Dict[UUID, datetime]:
        """Return ``{lead_id: latest activity time}`` over all leads."""
        query = (
            select(Activity.related_to_id, func.max(Activity.created_at))
            .where(
                Activity.related_to_id.is_not(None),
                Activity.related_to_type == "lead",
            )
            .group_by(Activity.related_to_id)
        )
        if since is not None:
            query = query.where(Activity.created_at >= since)

        async with self._session() as db:
            result = await db.execute(query)
            rows = result.all()
        return {lead_id: latest for lead_id, latest in rows}
