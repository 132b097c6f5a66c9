"""
Persistence for the caller-confirmed schema.

The schema outlives the import that used it (row readers consult it long after
the import finished), so it lives in the database rather than in memory.
"""
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from sheetflow.api.schemas.shared import SUPPORTED_COLUMN_TYPES, ConfirmedSchema
from sheetflow.core.errors import InvalidSchema, NotFound
from sheetflow.db.models import ConfirmedSchemaRecord

logger = logging.getLogger(__name__)

_SCHEMA_ROW_ID = 1


def validate_schema(schema: ConfirmedSchema) -> None:
    """Raise InvalidSchema unless names are present and unique and every type is supported."""
    if not schema.columns:
        raise InvalidSchema("Schema must contain at least one column")

    seen = set()
    for position, column in enumerate(schema.columns):
        name = column.name.strip()
        if not name:
            raise InvalidSchema(f"Column {position} has an empty name")
        if name.lower() in seen:
            raise InvalidSchema(f"Duplicate column name '{name}'")
        seen.add(name.lower())
        if column.type not in SUPPORTED_COLUMN_TYPES:
            raise InvalidSchema(
                f"Column '{name}' has unsupported type '{column.type}'; "
                f"expected one of {sorted(SUPPORTED_COLUMN_TYPES)}"
            )


class SchemaStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        ConfirmedSchemaRecord.__table__.create(bind=engine, checkfirst=True)

    def save(self, schema: ConfirmedSchema, *, upload_id: Optional[str] = None) -> None:
        validate_schema(schema)
        columns = [column.model_dump() for column in schema.columns]
        with Session(self.engine) as session, session.begin():
            record = session.get(ConfirmedSchemaRecord, _SCHEMA_ROW_ID)
            if record is None:
                session.add(ConfirmedSchemaRecord(id=_SCHEMA_ROW_ID, upload_id=upload_id, columns=columns))
            else:
                record.upload_id = upload_id
                record.columns = columns
        logger.info("Saved confirmed schema with %d columns (upload_id=%s)", len(columns), upload_id)

    def load(self) -> ConfirmedSchema:
        with Session(self.engine) as session:
            record = session.get(ConfirmedSchemaRecord, _SCHEMA_ROW_ID)
            if record is None:
                raise NotFound("No schema has been confirmed yet")
            return ConfirmedSchema.model_validate({"columns": record.columns})
