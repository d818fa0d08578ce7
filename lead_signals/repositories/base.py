import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lead_signals.core.exceptions import SourceUnavailableError

logger = logging.getLogger(__name__)


class BaseRepository:
    """Thin base class that holds the session factory.

    Every query opens its own short-lived ``AsyncSession``: one session
    cannot run statements concurrently, and the engine fans out to
    several repositories at once.  Driver and connection failures are
    translated into ``SourceUnavailableError`` carrying ``source_name``.
    """

    source_name: str = "record_store"

    def __init__(self, session_factory: Callable[..., AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Query against %s failed: %s", self.source_name, exc)
            raise SourceUnavailableError(self.source_name) from exc
