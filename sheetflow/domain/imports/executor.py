"""
Background import of a confirmed source into the row store.

A single ImportJob record tracks the run. ``start`` flips it to running with a
compare-and-set under a lock and hands the streaming work to a one-worker
pool; ``status`` hands out snapshots so polling never waits on the import.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import chain, islice
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sheetflow.api.schemas.shared import (
    ConfirmedSchema,
    ErrorInfo,
    ImportJob,
    ImportState,
    SourceReference,
)
from sheetflow.core.config import settings
from sheetflow.core.errors import ImportAlreadyInProgress
from sheetflow.db.row_store import RowStore
from sheetflow.domain.imports.inference import looks_like_header
from sheetflow.domain.imports.parsers import coerce_cell
from sheetflow.domain.uploads.cache import CacheStore
from sheetflow.domain.uploads.sources import Row, RowOpener, count_data_rows, open_source

logger = logging.getLogger(__name__)

LOGGED_ROW_ISSUES = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _RunProgress:
    rows_processed: int = 0
    rows_skipped: int = 0
    cells_coerced: int = 0
    # Data-row offset (1-based) where processing would resume; reported on failure.
    position: int = 1


def coerce_row(row: Row, schema: ConfirmedSchema) -> Tuple[Dict[str, Any], int]:
    """Map cell ``i`` onto confirmed column ``i``; returns the record and the number of failed cells."""
    record: Dict[str, Any] = {}
    failures = 0
    for index, column in enumerate(schema.columns):
        raw = row[index] if index < len(row) else None
        value, ok = coerce_cell(raw, column.type)
        if not ok:
            failures += 1
        record[column.name] = value
    return record, failures


class ImportExecutor:
    def __init__(
        self,
        row_store: RowStore,
        *,
        caches_to_invalidate: Sequence[CacheStore] = (),
        batch_size: Optional[int] = None,
        opener: RowOpener = open_source,
    ):
        self.row_store = row_store
        self.caches_to_invalidate = list(caches_to_invalidate)
        self.batch_size = batch_size or settings.import_batch_size
        self._open = opener
        self._job = ImportJob()
        self._lock = threading.Lock()
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sheetflow-import")
        self._future: Optional[Future] = None

    def status(self) -> ImportJob:
        with self._lock:
            return self._job.model_copy(deep=True)

    def is_running(self) -> bool:
        with self._lock:
            return self._job.state == ImportState.RUNNING

    def start(self, upload_id: str, source_ref: SourceReference, schema: ConfirmedSchema) -> None:
        """
        Begin importing ``source_ref`` in the background.

        Raises:
            ImportAlreadyInProgress: another import is running; the running job
                is left untouched.
        """
        with self._lock:
            if self._job.state == ImportState.RUNNING:
                logger.warning("Rejected import of '%s': job for '%s' still running", upload_id, self._job.upload_id)
                raise ImportAlreadyInProgress()
            previous = self._job
            self._job = ImportJob(state=ImportState.RUNNING, upload_id=upload_id, started_at=_utcnow())
            try:
                self._future = self._pool.submit(self._run, source_ref, schema)
            except RuntimeError:
                # Pool already shut down; the run never started.
                self._job = previous
                raise
        logger.info("Import of '%s' started with %d columns", upload_id, len(schema.columns))

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current run finishes; returns False on timeout."""
        future = self._future
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return bool(done)

    def shutdown(self) -> None:
        self._pool.shutdown(wait=True)

    def _update(self, **fields: Any) -> None:
        with self._lock:
            for name, value in fields.items():
                setattr(self._job, name, value)

    def _run(self, source_ref: SourceReference, schema: ConfirmedSchema) -> None:
        progress = _RunProgress()
        try:
            self.row_store.delete_and_create()
            self._stream(source_ref, schema, progress)
        except Exception as exc:
            error = ErrorInfo(row_offset=progress.position, cause=type(exc).__name__, message=str(exc))
            logger.error(
                "Import of '%s' failed at row %d after %d rows: %s",
                source_ref.original_name,
                progress.position,
                progress.rows_processed,
                exc,
            )
            # Partial rows stay in the table; previews cached mid-run are stale.
            self.row_store.preview_cache.clear_all()
            self._update(
                state=ImportState.FAILED,
                error=error,
                rows_processed=progress.rows_processed,
                rows_skipped=progress.rows_skipped,
                cells_coerced=progress.cells_coerced,
                finished_at=_utcnow(),
            )
            return

        for cache in self.caches_to_invalidate:
            cache.clear_all()
        self._update(
            state=ImportState.COMPLETED,
            rows_processed=progress.rows_processed,
            rows_skipped=progress.rows_skipped,
            cells_coerced=progress.cells_coerced,
            finished_at=_utcnow(),
        )
        logger.info(
            "Import of '%s' completed: %d rows imported, %d malformed rows skipped, %d cells coerced to null",
            source_ref.original_name,
            progress.rows_processed,
            progress.rows_skipped,
            progress.cells_coerced,
        )

    def _stream(self, source_ref: SourceReference, schema: ConfirmedSchema, progress: _RunProgress) -> None:
        with self._open(source_ref) as rows:
            first = next(rows, None)
            if first is None:
                self._update(rows_total=0)
                return

            has_header = source_ref.has_header
            lookahead: List[Row] = []
            if has_header is None:
                # Not staged through inference; judge row one the way inference would.
                lookahead = list(islice(rows, max(settings.inference_sample_rows - 1, 0)))
                has_header = looks_like_header(first, lookahead)
            # Cells map onto confirmed columns by position whatever the source width.
            width = len(first)
            data_rows: Iterable[Row] = chain(lookahead, rows) if has_header else chain([first], lookahead, rows)
            self._update(rows_total=count_data_rows(source_ref, has_header, self._open))

            batch: List[Dict[str, Any]] = []
            for offset, row in enumerate(data_rows, start=1):
                if len(row) != width:
                    progress.rows_skipped += 1
                    if progress.rows_skipped <= LOGGED_ROW_ISSUES:
                        logger.warning(
                            "Skipping malformed row %d of '%s': expected %d cells, got %d",
                            offset, source_ref.original_name, width, len(row),
                        )
                    progress.position = offset + 1
                    continue

                record, failures = coerce_row(row, schema)
                if failures:
                    progress.cells_coerced += failures
                    if progress.cells_coerced <= LOGGED_ROW_ISSUES:
                        logger.warning("Row %d of '%s': %d cells did not parse and were stored as null",
                                       offset, source_ref.original_name, failures)
                batch.append({"row_number": offset, "data": record})
                progress.position = offset + 1

                if len(batch) >= self.batch_size:
                    self._flush(batch, progress)
                    batch = []
                    progress.position = offset + 1

            self._flush(batch, progress)

    def _flush(self, batch: List[Dict[str, Any]], progress: _RunProgress) -> None:
        if not batch:
            return
        progress.position = batch[0]["row_number"]
        progress.rows_processed += self.row_store.insert_batch(batch)
        self._update(
            rows_processed=progress.rows_processed,
            rows_skipped=progress.rows_skipped,
            cells_coerced=progress.cells_coerced,
        )
        logger.debug("Flushed %d rows (%d total)", len(batch), progress.rows_processed)
