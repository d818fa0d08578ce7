"""Recompute lead scores from the command line.

Usage::

    python -m lead_signals.scripts.recompute_scores
    python -m lead_signals.scripts.recompute_scores <lead_id> [<lead_id> ...]

Exits non-zero when any lead failed to score.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional
from uuid import UUID

from lead_signals.core.config import settings
from lead_signals.core.database import AsyncSessionLocal, engine
from lead_signals.services.recompute import recompute_lead_scores

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute lead scores.")
    parser.add_argument(
        "lead_ids",
        nargs="*",
        type=UUID,
        help="Only recompute these leads (default: every actionable lead)",
    )
    return parser.parse_args(argv)


async def _run(lead_ids: Optional[List[UUID]]) -> int:
    try:
        summary = await recompute_lead_scores(AsyncSessionLocal, lead_ids)
    finally:
        await engine.dispose()

    if not summary.enabled:
        logger.info("Lead scoring disabled; nothing to do")
        return 0
    for failure in summary.failures:
        logger.warning("Lead %s not scored: %s", failure.lead_id, failure.reason)
    print(summary.model_dump_json(indent=2))
    return 1 if summary.failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=settings.LOG_LEVEL)
    args = _parse_args(argv)
    return asyncio.run(_run(args.lead_ids or None))


if __name__ == "__main__":
    sys.exit(main())
