# FILE: messboard/app.py
"""
FastAPI application entry point for Mess Board
Menus are posted, shown while active, and purged once their TTL runs out
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from messboard import __version__
from messboard.config import Settings, get_settings
from messboard.exceptions import MessBoardException
from messboard.logging_setup import setup_logging
from messboard.middleware.body_limit import BodySizeLimitMiddleware
from messboard.routes import events, health, metrics, records, upload
from messboard.services.blob_store import BlobStore, LocalBlobStore
from messboard.services.clock import Clock
from messboard.services.lifecycle import LifecycleEngine
from messboard.services.notifier import BroadcastHub
from messboard.services.record_store import RecordStore, build_record_store
from messboard.services.sweeper import Sweeper
from messboard.services.telemetry import init_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown"""
    state = app.state
    logger.info(f"Starting Mess Board backend v{__version__}")

    await state.store.start()
    init_telemetry(state.settings)

    if state.settings.sweep_enabled:
        state.sweeper.start()

    yield

    # Shutdown
    logger.info("Shutting down Mess Board backend")
    await state.sweeper.stop()
    state.hub.close()
    await state.store.close()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    blob_store: Optional[BlobStore] = None,
    clock: Optional[Clock] = None
) -> FastAPI:
    """Wire stores, hub, engine and sweeper into a FastAPI app"""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    store = store or build_record_store(settings)
    blob_store = blob_store or LocalBlobStore(settings.media_dir, settings.media_url_prefix)
    hub = BroadcastHub(queue_size=settings.subscriber_queue_size)
    engine = LifecycleEngine(store, blob_store, hub, clock=clock, ttl_ms=settings.record_ttl_ms)
    sweeper = Sweeper(
        engine,
        interval_seconds=settings.sweep_interval_seconds,
        run_on_start=settings.sweep_on_startup
    )

    app = FastAPI(
        title="Mess Board API",
        description="Community board for mess menus that expire after a fixed window",
        version=__version__,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.store = store
    app.state.blob_store = blob_store
    app.state.hub = hub
    app.state.engine = engine
    app.state.sweeper = sweeper

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Body size limit
    app.add_middleware(BodySizeLimitMiddleware, max_size=settings.body_size_limit_mb * 1024 * 1024)

    # Exception handlers
    @app.exception_handler(MessBoardException)
    async def board_exception_handler(request: Request, exc: MessBoardException):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")
        else:
            logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(records.router, prefix="/records", tags=["records"])
    app.include_router(records.router, prefix="/api/messes", include_in_schema=False)
    app.include_router(upload.router, prefix="/upload", tags=["upload"])
    app.include_router(events.router, tags=["events"])
    app.include_router(metrics.router, prefix="/metrics", tags=["metrics"])

    app.mount(settings.media_url_prefix, StaticFiles(directory=settings.media_dir), name="media")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "Mess Board",
            "version": __version__,
            "status": "active"
        }

    return app


app = create_app()


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "messboard.app:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
