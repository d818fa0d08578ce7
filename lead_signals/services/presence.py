"""Presence: is a lead interacting with us right now?

``is_active`` holds iff ``now - last_seen_at < threshold``, where
``last_seen_at`` is the later of the explicit presence record and the
most recent demo view inside the threshold window.

Observed leads each get their own ``PresenceObserver`` with two timers
(a staleness recheck and a source refetch) plus immediate handling of
push notifications.  The ``PresenceRegistry`` owns the map from lead id
to observer and tears an observer down with its last subscriber.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from lead_signals.core import constants
from lead_signals.core.config import settings
from lead_signals.core.exceptions import SourceUnavailableError
from lead_signals.repositories.presence_repository import PresenceRepository
from lead_signals.repositories.signal_sources import DemoViewRepository
from lead_signals.schemas.presence import PresenceState, as_utc
from lead_signals.services.fan_out import fan_out

logger = logging.getLogger(__name__)

PresenceLoader = Callable[[UUID], Awaitable[Optional[datetime]]]
PresenceListener = Callable[[PresenceState], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_threshold() -> timedelta:
    return timedelta(seconds=settings.PRESENCE_ACTIVE_THRESHOLD_SECONDS)


def is_active(
    last_seen_at: Optional[datetime], now: datetime, threshold: timedelta
) -> bool:
    if last_seen_at is None:
        return False
    return as_utc(now) - as_utc(last_seen_at) < threshold


def later_of(*timestamps: Optional[datetime]) -> Optional[datetime]:
    present = [as_utc(ts) for ts in timestamps if ts is not None]
    return max(present) if present else None


def resolve_presence(
    lead_id: UUID,
    presence_at: Optional[datetime],
    recent_view_at: Optional[datetime],
    now: datetime,
    threshold: timedelta = constants.ACTIVE_THRESHOLD,
) -> PresenceState:
    """Combine the explicit record and the view fallback into one state."""
    last_seen_at = later_of(presence_at, recent_view_at)
    return PresenceState(
        lead_id=lead_id,
        is_active=is_active(last_seen_at, now, threshold),
        last_seen_at=last_seen_at,
    )


class PresenceDetector:
    """Loads the two presence signals for one lead."""

    def __init__(
        self,
        presence_repo: PresenceRepository,
        demo_views: DemoViewRepository,
        threshold: Optional[timedelta] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._presence_repo = presence_repo
        self._demo_views = demo_views
        self._threshold = threshold or _default_threshold()
        self._timeout = (
            timeout if timeout is not None else settings.SOURCE_QUERY_TIMEOUT_SECONDS
        )
        self._clock = clock

    @property
    def threshold(self) -> timedelta:
        return self._threshold

    async def load_last_seen(self, lead_id: UUID) -> Optional[datetime]:
        """Return the later of the two signal timestamps.

        Raises ``SourceUnavailableError`` only when both signals failed;
        one failing source degrades to absent.
        """
        now = self._clock()
        outcome = await fan_out(
            {
                constants.SOURCE_PRESENCE: self._presence_repo.get_last_seen_at(
                    lead_id
                ),
                constants.SOURCE_DEMO_VIEWS: self._demo_views.latest_event(
                    lead_id, since=now - self._threshold
                ),
            },
            timeout=self._timeout,
        )
        if not outcome.results:
            raise outcome.failures[constants.SOURCE_PRESENCE]

        view = outcome.get(constants.SOURCE_DEMO_VIEWS)
        return later_of(
            outcome.get(constants.SOURCE_PRESENCE),
            view.occurred_at if view is not None else None,
        )

    async def detect(self, lead_id: UUID) -> PresenceState:
        """One-shot evaluation for callers that do not observe the lead."""
        last_seen_at = await self.load_last_seen(lead_id)
        return PresenceState(
            lead_id=lead_id,
            is_active=is_active(last_seen_at, self._clock(), self._threshold),
            last_seen_at=last_seen_at,
        )


class PresenceObserver:
    """Live presence state for exactly one lead."""

    def __init__(
        self,
        lead_id: UUID,
        loader: PresenceLoader,
        *,
        threshold: timedelta,
        recheck_interval: float,
        refetch_interval: float,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.lead_id = lead_id
        self._loader = loader
        self._threshold = threshold
        self._recheck_interval = recheck_interval
        self._refetch_interval = refetch_interval
        self._clock = clock
        self._last_seen_at: Optional[datetime] = None
        self._is_active = False
        self._listeners: List[PresenceListener] = []
        self._tasks: List[asyncio.Task] = []

    @property
    def state(self) -> PresenceState:
        return PresenceState(
            lead_id=self.lead_id,
            is_active=self._is_active,
            last_seen_at=self._last_seen_at,
        )

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: PresenceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PresenceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start(self) -> None:
        """Initial load, then start the recheck and refetch timers."""
        await self._refetch_logged()
        self._tasks = [
            asyncio.create_task(self._every(self._recheck_interval, self._recheck)),
            asyncio.create_task(
                self._every(self._refetch_interval, self._refetch_logged)
            ),
        ]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def refetch(self) -> None:
        """Reload the timestamps from the sources."""
        self._apply(await self._loader(self.lead_id))

    def push(self, last_seen_at: datetime) -> None:
        """Take a pushed timestamp into account without waiting for a tick."""
        self._apply(last_seen_at)

    def recheck(self) -> None:
        """Re-evaluate staleness against the clock with no new data."""
        self._apply(None)

    async def _recheck(self) -> None:
        self.recheck()

    async def _refetch_logged(self) -> None:
        try:
            await self.refetch()
        except SourceUnavailableError as exc:
            logger.warning(
                "Presence refetch for lead %s failed: %s", self.lead_id, exc.detail
            )

    async def _every(
        self, interval: float, action: Callable[[], Awaitable[None]]
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await action()
            except Exception:
                logger.error(
                    "Presence timer for lead %s failed; next tick continues",
                    self.lead_id,
                    exc_info=True,
                )

    def _apply(self, candidate: Optional[datetime]) -> None:
        changed = False
        if candidate is not None:
            candidate = as_utc(candidate)
        if candidate is not None and (
            self._last_seen_at is None or candidate > self._last_seen_at
        ):
            self._last_seen_at = candidate
            changed = True

        active = is_active(self._last_seen_at, self._clock(), self._threshold)
        if active != self._is_active:
            self._is_active = active
            changed = True

        if changed:
            self._emit()

    def _emit(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.warning(
                    "Presence listener for lead %s failed",
                    self.lead_id,
                    exc_info=True,
                )


class PresenceRegistry:
    """Owns one ``PresenceObserver`` per observed lead.

    Observers are created on the first subscription for a lead and torn
    down when the last subscriber leaves.
    """

    def __init__(
        self,
        loader: PresenceLoader,
        *,
        threshold: Optional[timedelta] = None,
        recheck_interval: Optional[float] = None,
        refetch_interval: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._loader = loader
        self._threshold = threshold or _default_threshold()
        self._recheck_interval = (
            recheck_interval
            if recheck_interval is not None
            else settings.PRESENCE_RECHECK_SECONDS
        )
        self._refetch_interval = (
            refetch_interval
            if refetch_interval is not None
            else settings.PRESENCE_REFETCH_SECONDS
        )
        self._clock = clock
        self._observers: Dict[UUID, PresenceObserver] = {}

    @property
    def observed_lead_ids(self) -> List[UUID]:
        return list(self._observers)

    def get(self, lead_id: UUID) -> Optional[PresenceObserver]:
        return self._observers.get(lead_id)

    async def subscribe(
        self, lead_id: UUID, listener: PresenceListener
    ) -> PresenceObserver:
        observer = self._observers.get(lead_id)
        if observer is not None:
            observer.add_listener(listener)
            return observer

        observer = PresenceObserver(
            lead_id,
            self._loader,
            threshold=self._threshold,
            recheck_interval=self._recheck_interval,
            refetch_interval=self._refetch_interval,
            clock=self._clock,
        )
        observer.add_listener(listener)
        self._observers[lead_id] = observer
        try:
            await observer.start()
        except BaseException:
            self._observers.pop(lead_id, None)
            await observer.stop()
            raise
        logger.info("Observing presence for lead %s", lead_id)
        return observer

    async def unsubscribe(self, lead_id: UUID, listener: PresenceListener) -> None:
        observer = self._observers.get(lead_id)
        if observer is None:
            return
        observer.remove_listener(listener)
        if observer.listener_count == 0:
            del self._observers[lead_id]
            await observer.stop()
            logger.info("Stopped observing presence for lead %s", lead_id)

    def notify(self, lead_id: UUID, last_seen_at: datetime) -> bool:
        """Deliver a push update; returns ``False`` if nobody observes the lead."""
        observer = self._observers.get(lead_id)
        if observer is None:
            return False
        observer.push(last_seen_at)
        return True

    async def shutdown(self) -> None:
        observers, self._observers = list(self._observers.values()), {}
        for observer in observers:
            await observer.stop()
