"""
ORM models backing the row store and the confirmed schema.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String

from sheetflow.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportedRow(Base):
    """One imported source row, stored as a JSON object keyed by confirmed column name."""
    __tablename__ = "imported_rows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    row_number = Column(Integer, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    imported_at = Column(DateTime(timezone=True), default=_utcnow)


class ConfirmedSchemaRecord(Base):
    """The caller-approved column list; a single row is kept and replaced on save."""
    __tablename__ = "confirmed_schemas"

    id = Column(Integer, primary_key=True)
    upload_id = Column(String, nullable=True)
    columns = Column(JSON, nullable=False)
    saved_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
