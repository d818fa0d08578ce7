import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Set, Tuple
from uuid import UUID

from redis.asyncio import Redis

from lead_signals.core.config import settings

logger = logging.getLogger(__name__)

FOLLOW_UP_LEAD_IDS_KEY = "lead_signals:follow_up:lead_ids"
FOLLOW_UP_SUGGESTIONS_KEY = "lead_signals:follow_up:suggestions"
RECENT_ACTIVITY_LEAD_IDS_KEY = "lead_signals:recent_activity:lead_ids"


class CacheService:
    """Advisory cache for the last computed lead-id sets.

    Nothing read from here is authoritative: it only backs the
    "last known result" fallback when a fresh scan fails.  If
    *redis_client* is ``None`` (Redis unavailable), every operation
    degrades to a no-op.  Values written without an explicit TTL expire
    after *default_ttl* seconds (``REDIS_CACHE_TTL``).
    """

    def __init__(
        self, redis_client: Optional[Redis] = None, default_ttl: int | None = None
    ) -> None:
        self._redis: Optional[Redis] = redis_client
        self._default_ttl = (
            default_ttl if default_ttl is not None else settings.REDIS_CACHE_TTL
        )

    async def get(self, key: str) -> Optional[str]:
        """Return the raw string value for *key*, or ``None``."""
        if self._redis is None:
            return None
        try:
            return await self._redis.get(key)
        except Exception:
            logger.warning("Redis GET failed for key %s", key)
            return None

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store a raw string value; *ttl* (seconds) overrides the default."""
        if self._redis is None:
            return
        if ttl is None:
            ttl = self._default_ttl
        try:
            if ttl:
                await self._redis.setex(key, ttl, value)
            else:
                await self._redis.set(key, value)
        except Exception:
            logger.warning("Redis SET failed for key %s", key)

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid JSON in cache key %s", key)
            return None

    async def set_json(
        self, key: str, data: Dict[str, Any], ttl: int | None = None
    ) -> None:
        try:
            payload = json.dumps(data, default=str)
        except (TypeError, ValueError):
            logger.warning("Failed to serialise data for cache key %s", key)
            return
        await self.set(key, payload, ttl=ttl)

    # ------------------------------------------------------------------
    # Lead-id snapshots
    # ------------------------------------------------------------------

    async def store_lead_ids(
        self,
        key: str,
        lead_ids: Iterable[UUID],
        evaluated_at: datetime,
        ttl: int | None = None,
    ) -> None:
        """Remember a computed lead-id set together with its evaluation time."""
        await self.set_json(
            key,
            {
                "lead_ids": sorted(str(lead_id) for lead_id in lead_ids),
                "evaluated_at": evaluated_at.isoformat(),
            },
            ttl=ttl,
        )

    async def load_lead_ids(self, key: str) -> Optional[Tuple[Set[UUID], datetime]]:
        """Return the last stored ``(lead_ids, evaluated_at)`` pair, or ``None``."""
        data = await self.get_json(key)
        if data is None:
            return None
        try:
            lead_ids = {UUID(value) for value in data["lead_ids"]}
            evaluated_at = datetime.fromisoformat(data["evaluated_at"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed lead-id snapshot in cache key %s", key)
            return None
        return lead_ids, evaluated_at

    @property
    def is_available(self) -> bool:
        """Return ``True`` if a Redis client is configured."""
        return self._redis is not None
