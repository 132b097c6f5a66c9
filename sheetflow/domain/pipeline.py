"""
Pipeline coordinator: upload → infer → confirm → import.

The coordinator only sequences the components; all shared state (the upload
cache, the job singleton, the stores) lives in an explicit PipelineContext
built once per application.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from sqlalchemy.engine import Engine

from sheetflow.api.schemas.shared import (
    ConfirmedSchema,
    ImportJob,
    InferredSchema,
    SourceKind,
    SourceReference,
)
from sheetflow.core.config import settings
from sheetflow.core.errors import ImportAlreadyInProgress, NotFound, SourceUnreadable
from sheetflow.db.row_store import RowStore
from sheetflow.domain.imports.executor import ImportExecutor
from sheetflow.domain.imports.inference import SchemaInferenceEngine
from sheetflow.domain.imports.schema_store import SchemaStore
from sheetflow.domain.uploads.cache import CacheStore
from sheetflow.domain.uploads.sources import discard_staged_file

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    upload_cache: CacheStore
    preview_cache: CacheStore
    inference: SchemaInferenceEngine
    schema_store: SchemaStore
    row_store: RowStore
    executor: ImportExecutor


def build_context(engine: Engine, *, inference: Optional[SchemaInferenceEngine] = None,
                  executor_batch_size: Optional[int] = None) -> PipelineContext:
    upload_cache: CacheStore = CacheStore("upload cache", on_clear=discard_staged_file)
    preview_cache: CacheStore = CacheStore("preview cache")
    row_store = RowStore(engine, preview_cache=preview_cache)
    executor = ImportExecutor(
        row_store,
        caches_to_invalidate=(upload_cache, preview_cache),
        batch_size=executor_batch_size,
    )
    return PipelineContext(
        upload_cache=upload_cache,
        preview_cache=preview_cache,
        inference=inference or SchemaInferenceEngine(),
        schema_store=SchemaStore(engine),
        row_store=row_store,
        executor=executor,
    )


class PipelineCoordinator:
    def __init__(self, context: PipelineContext):
        self.ctx = context
        # Guards the "no import running" check together with whatever it protects.
        self._lock = threading.Lock()

    def _reject_while_running(self, action: str) -> None:
        # A running import cannot be cancelled, so anything that would pull its
        # source or its rows out from under it is refused instead.
        if self.ctx.executor.is_running():
            logger.warning("Rejected %s: an import is still running", action)
            raise ImportAlreadyInProgress(
                f"Cannot {action} while an import is running; poll /import/status and retry later."
            )

    def receive_upload(self, key: str, source_ref: SourceReference) -> InferredSchema:
        """
        Infer the schema of ``source_ref`` and stage it as the one upload being onboarded.

        A source that fails inference is never staged, so the previous upload stays
        confirmable.
        """
        self._reject_while_running("accept a new upload")
        inferred = self.ctx.inference.infer(source_ref)
        staged = source_ref.model_copy(update={"has_header": inferred.has_header})

        with self._lock:
            self._reject_while_running("accept a new upload")
            self.ctx.upload_cache.clear_all()
            self.ctx.upload_cache.put(key, staged)
        logger.info("Staged %s source '%s' at %s", source_ref.kind.value, key, source_ref.location)
        return inferred.model_copy(update={"upload_id": key})

    def receive_fetch(self, key: str, url: str) -> InferredSchema:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise SourceUnreadable(f"'{url}' is not an http(s) URL")
        source_ref = SourceReference(kind=SourceKind.URL, location=url, original_name=key)
        return self.receive_upload(key, source_ref)

    def confirm_import(self, key: str, schema_payload: Any) -> None:
        """
        Persist the caller's schema and start importing the upload staged under ``key``.

        Returns as soon as the import is running; callers poll ``import_status``.

        Raises:
            NotFound: nothing is staged under ``key`` (e.g. a newer upload replaced it).
            InvalidSchema: the schema payload is malformed.
            ImportAlreadyInProgress: another import is running.
        """
        try:
            source_ref = self.ctx.upload_cache.get(key)
        except NotFound:
            raise NotFound(f"No such upload '{key}'; upload or fetch the source again") from None

        schema = ConfirmedSchema.from_payload(schema_payload)
        with self._lock:
            # Checked before saving so a running import keeps the schema it started with.
            self._reject_while_running("start another import")
            self.ctx.schema_store.save(schema, upload_id=key)
            self.ctx.executor.start(key, source_ref, schema)

    def import_status(self) -> ImportJob:
        return self.ctx.executor.status()

    def clear_everything(self) -> Dict[str, Any]:
        with self._lock:
            self._reject_while_running("clear the row store")
            self.ctx.upload_cache.clear_all()
            self.ctx.preview_cache.clear_all()
            self.ctx.row_store.delete_and_create()
        return {"success": True, "message": "Upload cache cleared and row store recreated"}

    def preview(self, limit: Optional[int] = None) -> Dict[str, Any]:
        return self.ctx.row_store.preview(limit)

    def current_schema(self) -> ConfirmedSchema:
        return self.ctx.schema_store.load()

    def shutdown(self) -> None:
        self.ctx.executor.shutdown()


def create_coordinator(engine: Optional[Engine] = None) -> PipelineCoordinator:
    """Build a coordinator against the configured database."""
    if engine is None:
        from sheetflow.db.session import get_engine
        engine = get_engine()
    logger.info("Pipeline ready (sample rows=%d, batch size=%d)",
                settings.inference_sample_rows, settings.import_batch_size)
    return PipelineCoordinator(build_context(engine))
