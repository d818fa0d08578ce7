"""Realtime presence change feed over Redis pub/sub.

Reporters publish ``{"last_seen_at": "<iso8601>"}`` on
``<PRESENCE_CHANNEL_PREFIX><lead_id>``; every process running a
``PresenceFeed`` forwards those messages to its local registry.  Without
Redis the feed is simply absent and observers fall back to polling.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Optional, Tuple
from uuid import UUID

from redis.asyncio import Redis

from lead_signals.core.config import settings
from lead_signals.schemas.presence import as_utc
from lead_signals.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class PresenceFeed:
    def __init__(
        self,
        redis_client: Optional[Redis],
        registry: Optional[PresenceRegistry] = None,
        channel_prefix: Optional[str] = None,
    ) -> None:
        self._redis = redis_client
        self._registry = registry
        self._prefix = channel_prefix or settings.PRESENCE_CHANNEL_PREFIX

    @property
    def is_available(self) -> bool:
        return self._redis is not None

    def channel_for(self, lead_id: UUID) -> str:
        return f"{self._prefix}{lead_id}"

    async def publish(self, lead_id: UUID, last_seen_at: datetime) -> bool:
        """Best-effort publish; returns ``False`` when nothing was sent."""
        if self._redis is None:
            return False
        try:
            await self._redis.publish(
                self.channel_for(lead_id),
                json.dumps({"last_seen_at": last_seen_at.isoformat()}),
            )
            return True
        except Exception:
            logger.warning("Presence publish failed for lead %s", lead_id)
            return False

    def parse_message(
        self, channel: Any, data: Any
    ) -> Optional[Tuple[UUID, datetime]]:
        """Decode one pub/sub message, or return ``None`` if malformed."""
        if isinstance(channel, bytes):
            channel = channel.decode()
        if isinstance(data, bytes):
            data = data.decode()
        if not isinstance(channel, str) or not channel.startswith(self._prefix):
            return None
        try:
            lead_id = UUID(channel[len(self._prefix):])
            last_seen_at = as_utc(
                datetime.fromisoformat(json.loads(data)["last_seen_at"])
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed presence message on %s", channel)
            return None
        return lead_id, last_seen_at

    def handle_message(self, message: dict) -> bool:
        """Forward one pub/sub message to the registry."""
        if self._registry is None or message.get("type") != "pmessage":
            return False
        parsed = self.parse_message(message.get("channel"), message.get("data"))
        if parsed is None:
            return False
        return self._registry.notify(*parsed)

    async def run(self) -> None:
        """Listen until cancelled."""
        if self._redis is None:
            logger.info("Redis unavailable – presence push disabled, polling only")
            return
        pubsub = self._redis.pubsub()
        try:
            await pubsub.psubscribe(f"{self._prefix}*")
            logger.info("Presence feed listening on %s*", self._prefix)
            async for message in pubsub.listen():
                try:
                    self.handle_message(message)
                except Exception:
                    logger.error(
                        "Dropping presence message on %s",
                        message.get("channel"),
                        exc_info=True,
                    )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("Presence feed stopped; polling continues", exc_info=True)
        finally:
            await pubsub.aclose()
