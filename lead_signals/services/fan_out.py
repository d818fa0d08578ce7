"""Concurrent source fan-out with one shared deadline."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Mapping

from lead_signals.core.exceptions import SourceUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """Per-source outcome of a fan-out.

    A source appears in exactly one of ``results`` or ``failures``.
    """

    results: Dict[str, Any] = field(default_factory=dict)
    failures: Dict[str, SourceUnavailableError] = field(default_factory=dict)

    @property
    def degraded_sources(self) -> List[str]:
        return sorted(self.failures)

    def get(self, source_name: str, default: Any = None) -> Any:
        """Return the source's result, or *default* if it degraded."""
        return self.results.get(source_name, default)


async def fan_out(
    queries: Mapping[str, Awaitable[Any]],
    timeout: float,
) -> FanOutResult:
    """Run every query concurrently and wait at most *timeout* seconds.

    A query that raises or misses the deadline is recorded as a
    ``SourceUnavailableError`` and logged; the others are unaffected.
    Queries still running at the deadline are cancelled, and so is every
    query if the caller itself is cancelled.
    """
    tasks = {name: asyncio.ensure_future(query) for name, query in queries.items()}
    outcome = FanOutResult()
    if not tasks:
        return outcome

    try:
        _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    finally:
        unfinished = [task for task in tasks.values() if not task.done()]
        for task in unfinished:
            task.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)

    for name, task in tasks.items():
        if task in pending or task.cancelled():
            error = SourceUnavailableError(
                name, f"Source '{name}' missed the {timeout:g}s deadline"
            )
        elif task.exception() is not None:
            exc = task.exception()
            if isinstance(exc, SourceUnavailableError):
                error = exc
            else:
                error = SourceUnavailableError(name, f"Source '{name}' failed: {exc}")
        else:
            outcome.results[name] = task.result()
            continue

        logger.warning("Degrading source %s to empty: %s", name, error.detail)
        outcome.failures[name] = error

    return outcome
