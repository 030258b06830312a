import asyncio
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetwatch.api.routes import router, ws_router
from fleetwatch.config import settings
from fleetwatch.errors import DuplicateKeyError, NotFoundError, UpstreamConnectionError
from fleetwatch.modules.sample_data import load_sample_data
from fleetwatch.modules.tracking_service import TrackingService

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _log_feed_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if isinstance(exc, UpstreamConnectionError):
        logger.critical("aisstream.io feed FAILED: %s (restart required)", exc)
    elif exc is not None:
        logger.error("aisstream.io feed crashed: %s", exc)


def create_app(service: Optional[TrackingService] = None) -> FastAPI:
    """Build the API. A pre-built *service* skips settings-driven construction (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        feed_task = None
        if getattr(app.state, "service", None) is None:
            app.state.service = TrackingService.from_settings(settings)
            if settings.SEED_SAMPLE_DATA:
                load_sample_data(app.state.service.store)
            if settings.AISSTREAM_ENABLED:
                # Missing token raises ConfigurationError here and aborts startup
                feed = app.state.service.make_feed(settings)
                feed_task = asyncio.create_task(feed.run())
                feed_task.add_done_callback(_log_feed_exit)
        yield
        if feed_task is not None:
            feed_task.cancel()

    app = FastAPI(
        title="FleetWatch",
        description="Real-time vessel tracking: AIS ingestion, geofencing, ETA and route analytics.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS origins from settings, comma-separated for env var support
    cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1")
    app.include_router(ws_router)

    # ── Structured error handlers ─────────────────────────────────────────────

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.detail, "reason": exc.reason})

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
        return JSONResponse(
            status_code=409,
            content={"error": "Conflict", "detail": str(exc), "field": exc.field},
        )

    # Also covers fleetwatch.errors.ValidationError, which is a ValueError
    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"error": "Validation error", "detail": str(exc)})

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
        return JSONResponse(status_code=500, content={"error": "Internal server error", "detail": "An unexpected error occurred."})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
