from fastapi import APIRouter

from lead_signals.api.v1.endpoints import follow_ups, health, scores, signals

router = APIRouter(prefix="/api/v1")

router.include_router(signals.router)
router.include_router(scores.router)
router.include_router(follow_ups.router)
router.include_router(health.router)
