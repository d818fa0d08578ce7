import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from lead_signals.api.v1.router import router as api_v1_router
from lead_signals.core.exceptions import (
    InvariantViolationError,
    LeadNotFoundError,
    ScoreNotFoundError,
    SourceUnavailableError,
)
from lead_signals.core.config import settings as app_settings
from lead_signals.core.database import AsyncSessionLocal
from lead_signals.core.rate_limit import limiter
from lead_signals.dependencies import create_redis_client
from lead_signals.repositories import DemoViewRepository, PresenceRepository
from lead_signals.services.presence import PresenceDetector, PresenceRegistry
from lead_signals.services.presence_feed import PresenceFeed

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_presence_registry() -> PresenceRegistry:
    """Process-wide registry whose observers load via the presence detector."""
    detector = PresenceDetector(
        presence_repo=PresenceRepository(AsyncSessionLocal),
        demo_views=DemoViewRepository(AsyncSessionLocal),
    )
    return PresenceRegistry(loader=detector.load_last_seen)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared Redis client and run the presence change feed."""
    registry: PresenceRegistry = app.state.presence_registry
    redis_client = await create_redis_client()
    app.state.redis_client = redis_client
    feed = PresenceFeed(redis_client=redis_client, registry=registry)
    feed_task = asyncio.create_task(feed.run())
    logger.info("Presence feed task scheduled")
    yield
    feed_task.cancel()
    try:
        await feed_task
    except asyncio.CancelledError:
        logger.info("Presence feed task stopped")
    await registry.shutdown()
    app.state.redis_client = None
    if redis_client is not None:
        await redis_client.aclose()


app = FastAPI(
    title="Lead Signals",
    description="Lead signal aggregation, presence, scoring and follow-up prioritization",
    version="0.1.0",
    lifespan=lifespan,
)

# Observers live for the process, not per request
app.state.presence_registry = build_presence_registry()
# Set by the lifespan; requests served without it run cache-less
app.state.redis_client = None

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware – restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(SourceUnavailableError)
async def source_unavailable_handler(request: Request, exc: SourceUnavailableError):
    logger.error("Source %s unavailable: %s", exc.source_name, exc.detail)
    return JSONResponse(
        status_code=503,
        content={
            "detail": exc.detail,
            "type": "source_unavailable",
            "source": exc.source_name,
        },
    )


@app.exception_handler(InvariantViolationError)
async def invariant_violation_handler(request: Request, exc: InvariantViolationError):
    logger.error("Invariant violation: %s", exc.detail)
    return JSONResponse(
        status_code=500,
        content={"detail": exc.detail, "type": "invariant_violation"},
    )


@app.exception_handler(LeadNotFoundError)
async def lead_not_found_handler(request: Request, exc: LeadNotFoundError):
    logger.warning("Lead not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "lead_not_found"},
    )


@app.exception_handler(ScoreNotFoundError)
async def score_not_found_handler(request: Request, exc: ScoreNotFoundError):
    logger.warning("Score not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "score_not_found"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
