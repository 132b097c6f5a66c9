"""
Endpoints that stage a new source and return its inferred schema.
"""
import logging
import os
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from sheetflow.api.dependencies import error_response, get_coordinator
from sheetflow.api.schemas.shared import FetchRequest, InferredSchema, SourceKind, SourceReference
from sheetflow.core.config import settings
from sheetflow.core.errors import PipelineError
from sheetflow.domain.pipeline import PipelineCoordinator
from sheetflow.domain.uploads.sources import discard_staged_file

router = APIRouter(tags=["uploads"])

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = settings.upload_max_file_size_mb * 1024 * 1024
COPY_CHUNK_BYTES = 1024 * 1024


def _ensure_within_size_limit(file_size: int, file_name: str) -> None:
    """Raise an HTTPException if a file exceeds the configured upload limit."""
    if file_size > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=(
                f"{file_name} is too large. "
                f"Maximum allowed upload size is {settings.upload_max_file_size_mb}MB."
            ),
        )


def _store_upload(file: UploadFile) -> Path:
    """Copy the multipart body to ``upload_dir``, stopping as soon as it exceeds the limit."""
    safe_name = os.path.basename(file.filename or "upload.csv")
    if file.size is not None:
        _ensure_within_size_limit(file.size, safe_name)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / f"{uuid.uuid4().hex}_{safe_name}"

    size = 0
    try:
        with target.open("wb") as out:
            while True:
                chunk = file.file.read(COPY_CHUNK_BYTES)
                if not chunk:
                    break
                size += len(chunk)
                _ensure_within_size_limit(size, safe_name)
                out.write(chunk)
    except HTTPException:
        target.unlink(missing_ok=True)
        raise
    logger.info("Stored upload '%s' (%d bytes) at %s", safe_name, size, target)
    return target


@router.post("/upload", response_model=InferredSchema)
def upload_endpoint(
    file: UploadFile = File(...),
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """
    Upload a CSV file and infer its schema.

    The original filename becomes the ``upload_id`` to confirm the import with.
    """
    key = file.filename or "upload.csv"
    stored = _store_upload(file)
    source_ref = SourceReference(kind=SourceKind.FILE, location=str(stored), original_name=key)
    try:
        return coordinator.receive_upload(key, source_ref)
    except PipelineError as e:
        # Rejected or unreadable uploads are never staged, so nothing else will remove the copy.
        discard_staged_file(source_ref)
        return error_response(e)


@router.post("/fetch", response_model=InferredSchema)
def fetch_endpoint(
    request: FetchRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """Stage a remote CSV by URL and infer its schema; the URL is the ``upload_id``."""
    try:
        return coordinator.receive_fetch(request.url, request.url)
    except PipelineError as e:
        return error_response(e)
