from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, AsyncGenerator, Callable, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from lead_signals.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from lead_signals.main import app
from lead_signals.schemas.common import EventKind
from lead_signals.schemas.signal import DemoSnapshot, LeadSnapshot, SignalEvent

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time shared by rule and scoring tests."""
    return NOW


@pytest.fixture
def make_lead() -> Callable[..., LeadSnapshot]:
    """Factory for ``LeadSnapshot`` objects; fresh, active lead by default."""

    def _make(
        lead_id: Optional[UUID] = None,
        pipeline_status: str = "new_lead",
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        **fields,
    ) -> LeadSnapshot:
        created_at = created_at or NOW - timedelta(days=1)
        return LeadSnapshot(
            id=lead_id or uuid4(),
            pipeline_status=pipeline_status,
            created_at=created_at,
            updated_at=updated_at or created_at,
            **fields,
        )

    return _make


@pytest.fixture
def make_demo() -> Callable[..., DemoSnapshot]:
    def _make(
        lead_id: Optional[UUID],
        email_sent_at: Optional[datetime] = None,
        first_viewed_at: Optional[datetime] = None,
    ) -> DemoSnapshot:
        return DemoSnapshot(
            id=uuid4(),
            lead_id=lead_id,
            email_sent_at=email_sent_at,
            first_viewed_at=first_viewed_at,
        )

    return _make


@pytest.fixture
def make_event() -> Callable[..., SignalEvent]:
    def _make(
        lead_id: UUID,
        kind: EventKind,
        occurred_at: datetime,
        payload: Optional[str] = None,
    ) -> SignalEvent:
        return SignalEvent(
            lead_id=lead_id, event_kind=kind, occurred_at=occurred_at, payload=payload
        )

    return _make


def make_source_repo(events=None, latest=None, error: Optional[Exception] = None):
    """Return an ``AsyncMock`` shaped like a ``SignalSourceRepository``."""
    repo = AsyncMock()
    if error is not None:
        repo.fetch_events = AsyncMock(side_effect=error)
        repo.latest_event = AsyncMock(side_effect=error)
    else:
        repo.fetch_events = AsyncMock(return_value=list(events or []))
        repo.latest_event = AsyncMock(return_value=latest)
    return repo


@pytest.fixture
def source_repo() -> Callable[..., AsyncMock]:
    return make_source_repo


@pytest.fixture
def mock_session_factory() -> MagicMock:
    """A session factory whose sessions are ``AsyncMock`` context managers."""
    mock_session = AsyncMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=mock_session)


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from lead_signals.core.cache import CacheService

    return CacheService(redis_client=mock_redis)
