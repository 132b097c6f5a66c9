"""
Open a SourceReference as a lazy stream of CSV rows.

Both local files and remote URLs are read incrementally so callers decide how
much of the source is ever pulled into memory: inference stops after its
sample, the import executor walks the whole stream row by row.
"""
import codecs
import csv
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, ContextManager, Iterable, Iterator, List, Optional

import requests

from sheetflow.api.schemas.shared import SourceKind, SourceReference
from sheetflow.core.config import settings
from sheetflow.core.errors import SourceUnreadable

logger = logging.getLogger(__name__)

Row = List[str]
RowOpener = Callable[[SourceReference], ContextManager[Iterator[Row]]]

CHUNK_SIZE = 64 * 1024

_READ_ERRORS = (OSError, csv.Error, UnicodeDecodeError, requests.RequestException)


def _iter_text_lines(chunks: Iterable[bytes], encoding: str = "utf-8") -> Iterator[str]:
    """Decode byte chunks into lines, keeping line endings so quoted newlines survive csv parsing."""
    decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
    pending = ""
    for chunk in chunks:
        if not chunk:
            continue
        pending += decoder.decode(chunk)
        lines = pending.splitlines(keepends=True)
        # The last piece may be an incomplete line; keep it for the next chunk.
        if lines and not lines[-1].endswith(("\n", "\r")):
            pending = lines.pop()
        else:
            pending = ""
        yield from lines
    pending += decoder.decode(b"", final=True)
    if pending:
        yield pending


def _guarded_rows(rows: Iterator[Row], location: str) -> Iterator[Row]:
    """Skip blank lines and surface read failures as SourceUnreadable."""
    try:
        for row in rows:
            if not any(cell.strip() for cell in row):
                continue
            yield row
    except _READ_ERRORS as exc:
        logger.warning("Reading source '%s' failed mid-stream: %s", location, exc)
        raise SourceUnreadable(f"Could not read '{location}': {exc}") from exc


@contextmanager
def _open_file(location: str) -> Iterator[Iterator[Row]]:
    try:
        handle = open(location, newline="", encoding="utf-8-sig")
    except OSError as exc:
        raise SourceUnreadable(f"Could not open file '{location}': {exc}") from exc
    try:
        yield _guarded_rows(csv.reader(handle), location)
    finally:
        handle.close()


@contextmanager
def _open_url(location: str, timeout: Optional[float]) -> Iterator[Iterator[Row]]:
    try:
        response = requests.get(location, stream=True, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise SourceUnreadable(f"Could not fetch '{location}': {exc}") from exc

    try:
        encoding = response.encoding or "utf-8"
        if encoding.lower() in ("iso-8859-1", "latin-1"):
            # requests defaults text/* without a charset to ISO-8859-1; CSV exports are UTF-8 in practice
            encoding = "utf-8"
        lines = _iter_text_lines(response.iter_content(chunk_size=CHUNK_SIZE), encoding)
        yield _guarded_rows(csv.reader(lines), location)
    finally:
        response.close()


@contextmanager
def open_source(source_ref: SourceReference, timeout: Optional[float] = None) -> Iterator[Iterator[Row]]:
    """
    Yield an iterator of non-blank CSV rows for ``source_ref``.

    Raises:
        SourceUnreadable: when the location cannot be opened or fetched, and
            when reading fails part way through the stream.
    """
    if timeout is None:
        timeout = settings.source_read_timeout_seconds

    if source_ref.kind == SourceKind.URL:
        opener = _open_url(source_ref.location, timeout)
    else:
        opener = _open_file(source_ref.location)

    with opener as rows:
        yield rows


def count_data_rows(
    source_ref: SourceReference, has_header: bool, opener: Optional[RowOpener] = None
) -> Optional[int]:
    """
    Count rows in a local file so progress can be reported against a total.

    Remote sources return None: counting would mean downloading them twice.
    """
    if source_ref.kind != SourceKind.FILE:
        return None
    with (opener or open_source)(source_ref) as rows:
        total = sum(1 for _ in rows)
    if has_header and total:
        total -= 1
    return total


def discard_staged_file(source_ref: SourceReference, staging_dir: Optional[str] = None) -> None:
    """
    Delete a file source once nothing refers to it any more.

    Only files under the upload directory are removed; URLs and files the
    service did not store itself are left alone.
    """
    if source_ref.kind != SourceKind.FILE:
        return
    staging = Path(staging_dir or settings.upload_dir).resolve()
    path = Path(source_ref.location).resolve()
    if not path.is_relative_to(staging):
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove staged upload %s: %s", path, exc)
        return
    logger.debug("Removed staged upload %s", path)
