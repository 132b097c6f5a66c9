"""
Endpoints that confirm a schema, start the background import and report on it.
"""
import logging

from fastapi import APIRouter, Depends, Response

from sheetflow.api.dependencies import error_response, get_coordinator
from sheetflow.api.schemas.shared import ClearEverythingResponse, ImportJob, ImportRequest
from sheetflow.core.errors import PipelineError
from sheetflow.domain.pipeline import PipelineCoordinator

router = APIRouter(tags=["imports"])

logger = logging.getLogger(__name__)


@router.post("/import", status_code=204)
def confirm_import_endpoint(
    request: ImportRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """
    Confirm the schema for a staged upload and start importing it.

    Returns 204 as soon as the import is running; poll ``/import/status``.
    """
    try:
        coordinator.confirm_import(request.upload_id, request.schema_)
    except PipelineError as e:
        return error_response(e)
    return Response(status_code=204)


@router.get("/import/status", response_model=ImportJob)
def import_status_endpoint(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    return coordinator.import_status()


@router.post("/deleteeverything", response_model=ClearEverythingResponse)
def clear_everything_endpoint(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    """Drop the staged upload, downstream caches and every imported row."""
    try:
        return coordinator.clear_everything()
    except PipelineError as e:
        return error_response(e)
