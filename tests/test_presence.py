import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from lead_signals.core.exceptions import SourceUnavailableError
from lead_signals.services.presence import (
    PresenceDetector,
    PresenceObserver,
    PresenceRegistry,
    is_active,
    later_of,
    resolve_presence,
)

from conftest import NOW, make_source_repo

THRESHOLD = timedelta(minutes=2)


class FakeClock:
    def __init__(self, start=NOW):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


def _observer(loader, clock, recheck=3600.0, refetch=3600.0):
    return PresenceObserver(
        uuid4(),
        loader,
        threshold=THRESHOLD,
        recheck_interval=recheck,
        refetch_interval=refetch,
        clock=clock,
    )


class TestIsActive:
    def test_seen_three_minutes_ago_is_inactive(self, now):
        assert is_active(now - timedelta(minutes=3), now, THRESHOLD) is False

    def test_seen_one_minute_ago_is_active(self, now):
        assert is_active(now - timedelta(minutes=1), now, THRESHOLD) is True

    def test_exactly_at_threshold_is_inactive(self, now):
        assert is_active(now - THRESHOLD, now, THRESHOLD) is False

    def test_never_seen(self, now):
        assert is_active(None, now, THRESHOLD) is False

    def test_naive_timestamp_read_as_utc(self, now):
        naive = (now - timedelta(minutes=1)).replace(tzinfo=None)

        assert is_active(naive, now, THRESHOLD) is True
        assert later_of(naive, now - timedelta(minutes=5)) == now - timedelta(minutes=1)

    def test_later_of(self, now):
        assert later_of(None, now, now - timedelta(seconds=5)) == now
        assert later_of(None, None) is None

    def test_resolve_prefers_later_signal(self, now):
        lead_id = uuid4()
        state = resolve_presence(
            lead_id,
            presence_at=now - timedelta(minutes=5),
            recent_view_at=now - timedelta(seconds=30),
            now=now,
        )

        assert state.is_active is True
        assert state.last_seen_at == now - timedelta(seconds=30)


class TestPresenceDetector:
    def _detector(self, presence_repo, demo_views):
        return PresenceDetector(
            presence_repo=presence_repo,
            demo_views=demo_views,
            threshold=THRESHOLD,
            timeout=1.0,
            clock=lambda: NOW,
        )

    @pytest.mark.asyncio
    async def test_explicit_record(self, now):
        presence_repo = AsyncMock()
        presence_repo.get_last_seen_at = AsyncMock(return_value=now - timedelta(minutes=1))

        state = await self._detector(presence_repo, make_source_repo()).detect(uuid4())

        assert state.is_active is True

    @pytest.mark.asyncio
    async def test_recent_view_fallback(self, make_event, now):
        from lead_signals.schemas.common import EventKind

        lead_id = uuid4()
        presence_repo = AsyncMock()
        presence_repo.get_last_seen_at = AsyncMock(return_value=None)
        view = make_event(lead_id, EventKind.demo_view, now - timedelta(seconds=40))
        demo_views = make_source_repo(latest=view)

        state = await self._detector(presence_repo, demo_views).detect(lead_id)

        assert state.is_active is True
        assert state.last_seen_at == view.occurred_at
        assert demo_views.latest_event.await_args.kwargs["since"] == now - THRESHOLD

    @pytest.mark.asyncio
    async def test_one_failed_signal_degrades(self, now):
        presence_repo = AsyncMock()
        presence_repo.get_last_seen_at = AsyncMock(
            side_effect=SourceUnavailableError("lead_presence")
        )

        state = await self._detector(presence_repo, make_source_repo()).detect(uuid4())

        assert state.is_active is False
        assert state.last_seen_at is None

    @pytest.mark.asyncio
    async def test_both_signals_failed_raises(self):
        presence_repo = AsyncMock()
        presence_repo.get_last_seen_at = AsyncMock(
            side_effect=SourceUnavailableError("lead_presence")
        )
        demo_views = make_source_repo(error=SourceUnavailableError("demo_views"))

        with pytest.raises(SourceUnavailableError):
            await self._detector(presence_repo, demo_views).detect(uuid4())


class TestPresenceObserver:
    """Push, recheck and refetch all funnel into one monotonic state."""

    @pytest.mark.asyncio
    async def test_start_loads_initial_state(self, now):
        clock = FakeClock()
        loader = AsyncMock(return_value=now - timedelta(seconds=30))
        observer = _observer(loader, clock)

        await observer.start()
        try:
            assert observer.state.is_active is True
            loader.assert_awaited_once_with(observer.lead_id)
        finally:
            await observer.stop()

    @pytest.mark.asyncio
    async def test_becomes_inactive_on_recheck(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=now - timedelta(minutes=1)), clock)
        states = []
        observer.add_listener(states.append)
        await observer.refetch()

        clock.advance(minutes=2)
        observer.recheck()

        assert [s.is_active for s in states] == [True, False]

    @pytest.mark.asyncio
    async def test_push_reactivates_immediately(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=now - timedelta(minutes=10)), clock)
        states = []
        observer.add_listener(states.append)
        await observer.refetch()

        observer.push(now)

        assert observer.state.is_active is True
        assert states[-1].last_seen_at == now

    @pytest.mark.asyncio
    async def test_older_push_never_rewinds(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=now), clock)
        await observer.refetch()

        observer.push(now - timedelta(minutes=5))

        assert observer.state.last_seen_at == now

    @pytest.mark.asyncio
    async def test_no_emit_without_change(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=now), clock)
        states = []
        observer.add_listener(states.append)
        await observer.refetch()

        observer.recheck()
        await observer.refetch()

        assert len(states) == 1

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=now), clock)
        states = []

        def broken(state):
            raise RuntimeError("listener crashed")

        observer.add_listener(broken)
        observer.add_listener(states.append)

        await observer.refetch()

        assert len(states) == 1

    @pytest.mark.asyncio
    async def test_timers_refetch_periodically(self, now):
        clock = FakeClock()
        loader = AsyncMock(return_value=now)
        observer = _observer(loader, clock, recheck=0.01, refetch=0.01)

        await observer.start()
        await asyncio.sleep(0.1)
        await observer.stop()

        assert loader.await_count >= 2
        calls = loader.await_count
        await asyncio.sleep(0.05)
        assert loader.await_count == calls

    @pytest.mark.asyncio
    async def test_naive_push_is_read_as_utc(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=now - timedelta(minutes=5)), clock)
        await observer.refetch()

        observer.push(now.replace(tzinfo=None))

        assert observer.state.last_seen_at == now
        assert observer.state.is_active is True

    @pytest.mark.asyncio
    async def test_naive_first_timestamp_then_recheck(self, now):
        clock = FakeClock()
        observer = _observer(AsyncMock(return_value=None), clock)
        await observer.refetch()
        observer.push(now.replace(tzinfo=None))

        clock.advance(minutes=3)
        observer.recheck()
        observer.push(now - timedelta(minutes=1))

        assert observer.state.is_active is False
        assert observer.state.last_seen_at == now

    @pytest.mark.asyncio
    async def test_timer_survives_failing_tick(self, now):
        clock = FakeClock()
        calls = []

        async def loader(lead_id):
            calls.append(lead_id)
            if len(calls) == 2:
                raise RuntimeError("unexpected row")
            return now

        observer = _observer(loader, clock, refetch=0.01)
        await observer.start()
        await asyncio.sleep(0.1)
        await observer.stop()

        assert len(calls) >= 3
        assert observer.state.last_seen_at == now

    @pytest.mark.asyncio
    async def test_refetch_failure_keeps_last_state(self, now):
        clock = FakeClock()
        loader = AsyncMock(return_value=now)
        observer = _observer(loader, clock, refetch=0.01)
        await observer.start()

        loader.side_effect = SourceUnavailableError("lead_presence")
        await asyncio.sleep(0.05)
        await observer.stop()

        assert observer.state.last_seen_at == now


class TestPresenceRegistry:
    def _registry(self, loader, clock=None):
        return PresenceRegistry(
            loader,
            threshold=THRESHOLD,
            recheck_interval=3600.0,
            refetch_interval=3600.0,
            clock=clock or FakeClock(),
        )

    @pytest.mark.asyncio
    async def test_one_observer_per_lead(self, now):
        loader = AsyncMock(return_value=now)
        registry = self._registry(loader)
        lead_id = uuid4()
        first, second = [], []

        await registry.subscribe(lead_id, first.append)
        await registry.subscribe(lead_id, second.append)

        assert registry.observed_lead_ids == [lead_id]
        loader.assert_awaited_once()
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_last_unsubscribe_tears_down(self, now):
        registry = self._registry(AsyncMock(return_value=now))
        lead_id = uuid4()
        first, second = [], []
        await registry.subscribe(lead_id, first.append)
        await registry.subscribe(lead_id, second.append)

        await registry.unsubscribe(lead_id, first.append)
        assert registry.get(lead_id) is not None

        await registry.unsubscribe(lead_id, second.append)
        assert registry.get(lead_id) is None
        assert registry.observed_lead_ids == []

    @pytest.mark.asyncio
    async def test_notify_routes_to_observer(self, now):
        clock = FakeClock()
        registry = self._registry(AsyncMock(return_value=None), clock)
        lead_id = uuid4()
        states = []
        await registry.subscribe(lead_id, states.append)

        assert registry.notify(lead_id, now) is True
        assert registry.notify(uuid4(), now) is False
        assert states[-1].is_active is True
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_failed_start_leaves_no_observer(self):
        registry = self._registry(AsyncMock(side_effect=RuntimeError("db down")))
        lead_id = uuid4()

        with pytest.raises(RuntimeError):
            await registry.subscribe(lead_id, lambda state: None)

        assert registry.observed_lead_ids == []

    @pytest.mark.asyncio
    async def test_shutdown_stops_everything(self, now):
        registry = self._registry(AsyncMock(return_value=now))
        await registry.subscribe(uuid4(), lambda state: None)
        await registry.subscribe(uuid4(), lambda state: None)

        await registry.shutdown()

        assert registry.observed_lead_ids == []
