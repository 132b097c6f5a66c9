"""
Shared dependencies and helpers for the API routers.
"""
import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from sheetflow.core.errors import PipelineError
from sheetflow.domain.pipeline import PipelineCoordinator

logger = logging.getLogger(__name__)


def get_coordinator(request: Request) -> PipelineCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Pipeline is not initialized")
    return coordinator


def error_response(exc: PipelineError) -> JSONResponse:
    """Translate a pipeline error into its HTTP status with an ``{errorKind, message}`` body."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_kind, exc.message)
    else:
        logger.info("Request rejected with %s: %s", exc.error_kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
