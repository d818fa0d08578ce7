import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from lead_signals.services.presence import PresenceRegistry
from lead_signals.services.presence_feed import PresenceFeed

PREFIX = "lead_presence:"


def _pubsub_with(messages):
    pubsub = MagicMock()
    pubsub.psubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()

    async def listen():
        for message in messages:
            yield message

    pubsub.listen = listen
    return pubsub


class TestPublish:
    @pytest.mark.asyncio
    async def test_publishes_on_lead_channel(self, mock_redis, now):
        feed = PresenceFeed(mock_redis, channel_prefix=PREFIX)
        lead_id = uuid4()

        assert await feed.publish(lead_id, now) is True

        channel, payload = mock_redis.publish.await_args.args
        assert channel == f"{PREFIX}{lead_id}"
        assert json.loads(payload) == {"last_seen_at": now.isoformat()}

    @pytest.mark.asyncio
    async def test_without_redis(self, now):
        assert await PresenceFeed(None).publish(uuid4(), now) is False

    @pytest.mark.asyncio
    async def test_redis_error_is_swallowed(self, mock_redis, now):
        mock_redis.publish = AsyncMock(side_effect=ConnectionError("gone"))

        assert await PresenceFeed(mock_redis).publish(uuid4(), now) is False


class TestParseMessage:
    def test_naive_timestamp_read_as_utc(self, now):
        feed = PresenceFeed(None, channel_prefix=PREFIX)
        lead_id = uuid4()

        parsed = feed.parse_message(
            f"{PREFIX}{lead_id}",
            json.dumps({"last_seen_at": now.replace(tzinfo=None).isoformat()}),
        )

        assert parsed == (lead_id, now)
        assert parsed[1].tzinfo is not None

    def test_valid_bytes_message(self, now):
        feed = PresenceFeed(None, channel_prefix=PREFIX)
        lead_id = uuid4()

        parsed = feed.parse_message(
            f"{PREFIX}{lead_id}".encode(),
            json.dumps({"last_seen_at": now.isoformat()}).encode(),
        )

        assert parsed == (lead_id, now)

    @pytest.mark.parametrize(
        "channel, data",
        [
            ("other:channel", '{"last_seen_at": "2026-10-19T12:00:00+00:00"}'),
            (f"{PREFIX}not-a-uuid", '{"last_seen_at": "2026-10-19T12:00:00+00:00"}'),
            (f"{PREFIX}{uuid4()}", '{"seen": "yesterday"}'),
            (f"{PREFIX}{uuid4()}", '{"last_seen_at": "not a date"}'),
        ],
    )
    def test_malformed_messages_ignored(self, channel, data):
        assert PresenceFeed(None, channel_prefix=PREFIX).parse_message(channel, data) is None


class TestHandleMessage:
    def test_routes_to_registry(self, now):
        registry = MagicMock()
        registry.notify = MagicMock(return_value=True)
        feed = PresenceFeed(None, registry=registry, channel_prefix=PREFIX)
        lead_id = uuid4()

        handled = feed.handle_message(
            {
                "type": "pmessage",
                "channel": f"{PREFIX}{lead_id}",
                "data": json.dumps({"last_seen_at": now.isoformat()}),
            }
        )

        assert handled is True
        registry.notify.assert_called_once_with(lead_id, now)

    def test_subscribe_confirmations_ignored(self):
        registry = MagicMock()
        feed = PresenceFeed(None, registry=registry, channel_prefix=PREFIX)

        assert feed.handle_message({"type": "psubscribe", "channel": PREFIX + "*", "data": 1}) is False
        registry.notify.assert_not_called()


class TestRun:
    @pytest.mark.asyncio
    async def test_without_redis_returns(self):
        await PresenceFeed(None).run()

    @pytest.mark.asyncio
    async def test_forwards_messages_then_closes(self, now):
        lead_id = uuid4()
        pubsub = _pubsub_with(
            [
                {"type": "psubscribe", "channel": PREFIX + "*", "data": 1},
                {
                    "type": "pmessage",
                    "channel": f"{PREFIX}{lead_id}",
                    "data": json.dumps({"last_seen_at": now.isoformat()}),
                },
            ]
        )
        redis = MagicMock()
        redis.pubsub = MagicMock(return_value=pubsub)
        registry = MagicMock()

        await PresenceFeed(redis, registry=registry, channel_prefix=PREFIX).run()

        pubsub.psubscribe.assert_awaited_once_with(f"{PREFIX}*")
        registry.notify.assert_called_once_with(lead_id, now)
        pubsub.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_naive_timestamp_reaches_every_observer(self, now):
        lead_a, lead_b = uuid4(), uuid4()
        registry = PresenceRegistry(
            AsyncMock(return_value=now - timedelta(minutes=5)),
            threshold=timedelta(minutes=2),
            recheck_interval=3600.0,
            refetch_interval=3600.0,
            clock=lambda: now,
        )
        await registry.subscribe(lead_a, lambda state: None)
        await registry.subscribe(lead_b, lambda state: None)
        pubsub = _pubsub_with(
            [
                {
                    "type": "pmessage",
                    "channel": f"{PREFIX}{lead_a}",
                    "data": json.dumps(
                        {"last_seen_at": now.replace(tzinfo=None).isoformat()}
                    ),
                },
                {
                    "type": "pmessage",
                    "channel": f"{PREFIX}{lead_b}",
                    "data": json.dumps({"last_seen_at": now.isoformat()}),
                },
            ]
        )
        redis = MagicMock()
        redis.pubsub = MagicMock(return_value=pubsub)

        try:
            await PresenceFeed(redis, registry=registry, channel_prefix=PREFIX).run()

            for lead_id in (lead_a, lead_b):
                state = registry.get(lead_id).state
                assert state.is_active is True
                assert state.last_seen_at == now
        finally:
            await registry.shutdown()

    @pytest.mark.asyncio
    async def test_failing_message_does_not_stop_the_feed(self, now):
        lead_a, lead_b = uuid4(), uuid4()
        pubsub = _pubsub_with(
            [
                {
                    "type": "pmessage",
                    "channel": f"{PREFIX}{lead}",
                    "data": json.dumps({"last_seen_at": now.isoformat()}),
                }
                for lead in (lead_a, lead_b)
            ]
        )
        redis = MagicMock()
        redis.pubsub = MagicMock(return_value=pubsub)
        registry = MagicMock()
        registry.notify = MagicMock(side_effect=[RuntimeError("observer broke"), True])

        await PresenceFeed(redis, registry=registry, channel_prefix=PREFIX).run()

        assert registry.notify.call_count == 2
        registry.notify.assert_called_with(lead_b, now)
        pubsub.aclose.assert_awaited_once()
