import asyncio
import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket

from lead_signals.core.exceptions import LeadNotFoundError
from lead_signals.schemas.last_seen import LastSeen
from lead_signals.schemas.presence import PresenceReport, PresenceState
from lead_signals.services.last_seen import LastSeenResolver
from lead_signals.services.presence import PresenceDetector, PresenceRegistry
from lead_signals.services.presence_feed import PresenceFeed
from lead_signals.repositories.lead_repository import LeadRepository
from lead_signals.repositories.presence_repository import PresenceRepository
from lead_signals.api.deps import (
    get_last_seen_resolver,
    get_lead_repo,
    get_presence_detector,
    get_presence_feed,
    get_presence_registry,
    get_presence_repo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["Signals"])


@router.get("/{lead_id}/last-seen", response_model=LastSeen)
async def get_last_seen(
    lead_id: UUID,
    resolver: LastSeenResolver = Depends(get_last_seen_resolver),
) -> LastSeen:
    """Most recent interaction across demo views, emails, notes and calls.

    Sources that fail are listed in ``degraded_sources``.
    """
    return await resolver.resolve(lead_id)


@router.get("/{lead_id}/presence", response_model=PresenceState)
async def get_presence(
    lead_id: UUID,
    detector: PresenceDetector = Depends(get_presence_detector),
) -> PresenceState:
    """One-shot presence check."""
    return await detector.detect(lead_id)


@router.post("/{lead_id}/presence", response_model=PresenceState)
async def report_presence(
    lead_id: UUID,
    report: PresenceReport,
    lead_repo: LeadRepository = Depends(get_lead_repo),
    presence_repo: PresenceRepository = Depends(get_presence_repo),
    detector: PresenceDetector = Depends(get_presence_detector),
    registry: PresenceRegistry = Depends(get_presence_registry),
    feed: PresenceFeed = Depends(get_presence_feed),
) -> PresenceState:
    """Record that the lead was just seen and push it to live observers."""
    if await lead_repo.get_by_id(lead_id) is None:
        raise LeadNotFoundError(f"Lead {lead_id} not found")

    last_seen_at = report.last_seen_at or datetime.now(timezone.utc)
    await presence_repo.touch(lead_id, last_seen_at)
    registry.notify(lead_id, last_seen_at)
    await feed.publish(lead_id, last_seen_at)
    return await detector.detect(lead_id)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/{lead_id}/presence/stream")
async def stream_presence(
    websocket: WebSocket,
    lead_id: UUID,
    registry: PresenceRegistry = Depends(get_presence_registry),
) -> None:
    """Send the current presence state, then every change until disconnect."""
    await websocket.accept()
    updates: asyncio.Queue = asyncio.Queue()
    listener = updates.put_nowait

    observer = await registry.subscribe(lead_id, listener)
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while not updates.empty():
            updates.get_nowait()
        await websocket.send_json(observer.state.model_dump(mode="json"))

        while True:
            next_update = asyncio.create_task(updates.get())
            done, _ = await asyncio.wait(
                {disconnected, next_update}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnected in done:
                next_update.cancel()
                break
            state: PresenceState = next_update.result()
            await websocket.send_json(state.model_dump(mode="json"))
    finally:
        disconnected.cancel()
        await registry.unsubscribe(lead_id, listener)
        logger.debug("Presence stream for lead %s closed", lead_id)
