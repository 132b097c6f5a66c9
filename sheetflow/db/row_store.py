"""
Backing row store for imported data.

Rows are stored as JSON objects keyed by confirmed column name. Previews are
served through a downstream read cache that the import executor invalidates
once new data lands.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.engine import Engine

from sheetflow.core.config import settings
from sheetflow.core.errors import NotFound
from sheetflow.db.models import ImportedRow
from sheetflow.domain.uploads.cache import CacheStore

logger = logging.getLogger(__name__)

_table = ImportedRow.__table__


class RowStore:
    def __init__(self, engine: Engine, preview_cache: Optional[CacheStore] = None):
        self.engine = engine
        self.preview_cache = preview_cache if preview_cache is not None else CacheStore("preview cache")
        _table.create(bind=engine, checkfirst=True)

    def insert_batch(self, rows: List[Dict[str, Any]]) -> int:
        """Insert ``[{"row_number": int, "data": {...}}, ...]`` in one transaction."""
        if not rows:
            return 0
        with self.engine.begin() as conn:
            conn.execute(insert(_table), rows)
        return len(rows)

    def delete_and_create(self) -> None:
        """Drop every imported row by recreating the table."""
        with self.engine.begin() as conn:
            _table.drop(bind=conn, checkfirst=True)
            _table.create(bind=conn)
        self.preview_cache.clear_all()
        logger.info("Row store '%s' dropped and recreated", _table.name)

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_table)).scalar() or 0

    def preview(self, limit: Optional[int] = None) -> Dict[str, Any]:
        limit = limit or settings.preview_row_limit
        cache_key = f"preview:{limit}"
        try:
            return self.preview_cache.get(cache_key)
        except NotFound:
            pass

        with self.engine.connect() as conn:
            result = conn.execute(select(_table.c.data).order_by(_table.c.row_number).limit(limit))
            rows = [row.data for row in result]
        payload = {"total_rows": self.count(), "rows": rows}
        self.preview_cache.put(cache_key, payload)
        return payload
