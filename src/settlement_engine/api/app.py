"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settlement_engine import __version__
from settlement_engine.api.routes import health_router, terminations_router
from settlement_engine.calculators import SettlementCalculator
from settlement_engine.config import Settings, configure_logging, get_settings
from settlement_engine.database import dispose_db, init_db
from settlement_engine.documents import StubDocumentGenerator
from settlement_engine.errors import (
    ComputationError,
    ConflictError,
    DocumentGenerationError,
    NotFoundError,
    SettlementEngineError,
    ValidationError,
)
from settlement_engine.events import AsyncEventEmitter
from settlement_engine.services import (
    AsyncioJobQueue,
    JobQueue,
    TerminationProcessor,
    TerminationService,
)

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[SettlementEngineError], int]] = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (DocumentGenerationError, 502),
    (ComputationError, 500),
]


def status_for(exc: SettlementEngineError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def run_reaper(
    processor: TerminationProcessor, queue: JobQueue, interval_seconds: int
) -> None:
    """Periodically fail stale claims and redeliver lost jobs until cancelled."""
    logger.info("Stale-claim reaper started (every %ss)", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await processor.reap_stale_cases(queue)
        except Exception:
            logger.exception("Stale-claim reaper pass failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    # Startup
    _, session_factory = init_db()
    emitter = AsyncEventEmitter()
    calculator = SettlementCalculator(engine_version=settings.engine_version)
    queue = AsyncioJobQueue()
    processor = TerminationProcessor(
        session_factory,
        calculator,
        StubDocumentGenerator(base_url=settings.document_base_url),
        emitter=emitter,
        settings=settings,
    )
    app.state.session_factory = session_factory
    app.state.emitter = emitter
    app.state.job_queue = queue
    app.state.processor = processor
    app.state.termination_service = TerminationService(
        session_factory, calculator, queue, processor
    )
    reaper = asyncio.create_task(run_reaper(processor, queue, settings.reaper_interval_seconds))

    yield

    # Shutdown
    reaper.cancel()
    with suppress(asyncio.CancelledError):
        await reaper
    await queue.shutdown()
    await dispose_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Settlement Engine API",
        description="Final settlement (STC) calculation and termination workflow",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(SettlementEngineError)
    async def settlement_error_handler(
        request: Request, exc: SettlementEngineError
    ) -> JSONResponse:
        """Map domain errors to HTTP responses."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(terminations_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
