"""FastAPI application for LaudReader."""

import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import BaseModel

from laudreader.articles_api import messages_router, player_router, router as articles_router
from laudreader.config import settings
from laudreader.db.connection import close_db, init_db
from laudreader.errors import ArticleNotFound, ExtractionFailure, Unauthenticated
from laudreader.services import Services, build_services

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    status: str
    signed_in: bool
    active_jobs: int
    audio_dir: str


def create_app(services_factory: Optional[Callable[[], Awaitable[Services]]] = None) -> FastAPI:
    """Build the app; services_factory replaces the default wiring (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services_factory is None:
            settings.ensure_directories()
            await init_db()
            services = build_services()
        else:
            services = await services_factory()
        app.state.services = services

        if settings.RESUME_PENDING_ON_STARTUP:
            try:
                await services.coordinator.resume_pending()
            except Exception as e:
                logger.warning(f"Could not resume pending generation: {e}")

        logger.info("LaudReader started")
        logger.info(f"Audio dir: {services.coordinator.audio_dir}")
        yield

        # Jobs are never cancelled; shutdown waits for the live job set to drain
        await services.close()
        if services_factory is None:
            await close_db()
            logger.info("Database connection closed")

    app = FastAPI(
        title="LaudReader",
        description="Listen to web articles",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(articles_router)
    app.include_router(player_router)
    app.include_router(messages_router)

    @app.exception_handler(ArticleNotFound)
    async def article_not_found_handler(request: Request, exc: ArticleNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ExtractionFailure)
    async def extraction_failure_handler(request: Request, exc: ExtractionFailure):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(Unauthenticated)
    async def unauthenticated_handler(request: Request, exc: Unauthenticated):
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthStatus)
    async def health_check(request: Request):
        """Service status and number of running generation jobs."""
        services: Services = request.app.state.services
        signed_in = await services.credentials.is_signed_in()
        return HealthStatus(
            status="healthy" if signed_in else "degraded",
            signed_in=signed_in,
            active_jobs=len(services.coordinator.active_job_ids()),
            audio_dir=str(services.coordinator.audio_dir),
        )

    return app


app = create_app()

# Prometheus metrics
Instrumentator().instrument(app).expose(app, endpoint="/metrics")
