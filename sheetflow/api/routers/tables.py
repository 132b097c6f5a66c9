"""
Read side of the row store: preview of imported rows and the confirmed schema.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from sheetflow.api.dependencies import error_response, get_coordinator
from sheetflow.api.schemas.shared import ConfirmedSchema, PreviewResponse
from sheetflow.core.errors import PipelineError
from sheetflow.domain.pipeline import PipelineCoordinator

router = APIRouter(tags=["tables"])


@router.get("/preview", response_model=PreviewResponse)
def preview_endpoint(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    return coordinator.preview(limit)


@router.get("/schema", response_model=ConfirmedSchema)
def schema_endpoint(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    try:
        return coordinator.current_schema()
    except PipelineError as e:
        return error_response(e)
