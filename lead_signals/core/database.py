from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from lead_signals.core.config import settings

# Source fan-out opens one session per adapter call, so the pool must
# cover SCORE_RECOMPUTE_CONCURRENCY x five sources at peak.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    poolclass=AsyncAdaptedQueuePool,
    pool_size=10,
    max_overflow=40,
    pool_pre_ping=True,
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_session_factory():
    """Dependency for FastAPI routes to get the async session factory."""
    return AsyncSessionLocal
