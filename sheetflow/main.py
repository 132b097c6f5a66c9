"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers the pipeline routers.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routers import imports, tables, uploads
from .core.config import settings
from .core.logging_config import configure_logging
from .domain.pipeline import PipelineCoordinator, create_coordinator

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline on startup (unless one was injected) and drain the import worker on shutdown."""
    if getattr(app.state, "coordinator", None) is None:
        if os.getenv("SKIP_DB_INIT") == "1":
            logger.info("SKIP_DB_INIT=1 detected; pipeline not initialized")
            yield
            return
        app.state.coordinator = create_coordinator()

    yield

    coordinator: PipelineCoordinator = app.state.coordinator
    coordinator.shutdown()


def create_app(coordinator: Optional[PipelineCoordinator] = None) -> FastAPI:
    app = FastAPI(
        title="Sheetflow API",
        version="1.0.0",
        description="Upload or fetch tabular data, confirm its inferred schema and import it into the row store",
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(uploads.router)
    app.include_router(imports.router)
    app.include_router(tables.router)

    @app.get("/")
    async def root():
        """Root endpoint returning API information."""
        return {"message": "Sheetflow API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "service": "sheetflow-api",
        }

    return app


app = create_app()
