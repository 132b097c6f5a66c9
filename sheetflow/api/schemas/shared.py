import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sheetflow.core.errors import InvalidSchema


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ColumnType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


SUPPORTED_COLUMN_TYPES = {column_type.value for column_type in ColumnType}


class SourceKind(str, Enum):
    FILE = "file"
    URL = "url"


class SourceReference(BaseModel):
    """Where the data lives: a local file path or a remote URL."""
    model_config = ConfigDict(frozen=True)

    kind: SourceKind
    location: str
    original_name: str
    received_at: datetime = Field(default_factory=_utcnow)
    # Filled in once inference has looked at the source; the import honours it.
    has_header: Optional[bool] = None


class ColumnGuess(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: ColumnType
    sample_values: List[str] = Field(default_factory=list)
    confidence: float = 0.0


class InferredSchema(BaseModel):
    """Result of sampling a source; callers edit a copy into a ConfirmedSchema."""
    model_config = ConfigDict(frozen=True)

    upload_id: Optional[str] = None
    has_header: bool = True
    sampled_rows: int = 0
    columns: List[ColumnGuess]


class ConfirmedColumn(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    type: str


class ConfirmedSchema(BaseModel):
    """
    Caller-approved column list.

    Column ``i`` reads cell ``i`` of every source row, so callers may rename
    and retype columns but not reorder them.
    """
    model_config = ConfigDict(frozen=True)

    columns: List[ConfirmedColumn]

    @classmethod
    def from_payload(cls, payload: Union[str, bytes, list, dict, Any]) -> "ConfirmedSchema":
        """
        Build a schema from the caller's JSON.

        Accepts a JSON string or an already-decoded object, either a bare list
        of ``{name, type}`` objects or ``{"columns": [...]}``. Extra keys such as
        ``sample_values`` from the inference response are ignored.
        """
        if isinstance(payload, ConfirmedSchema):
            return payload
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise InvalidSchema(f"Schema is not valid JSON: {exc.msg}") from exc

        if isinstance(payload, list):
            payload = {"columns": payload}
        if not isinstance(payload, dict):
            raise InvalidSchema("Schema must be a list of columns or an object with a 'columns' list")

        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise InvalidSchema(f"Schema is malformed: {exc.errors()[0].get('msg', str(exc))}") from exc

    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


class ImportState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorInfo(BaseModel):
    row_offset: int
    cause: str
    message: str


class ImportJob(BaseModel):
    """Mutable singleton tracked by the import executor; callers only see copies."""
    state: ImportState = ImportState.IDLE
    upload_id: Optional[str] = None
    rows_processed: int = 0
    rows_total: Optional[int] = None
    rows_skipped: int = 0
    cells_coerced: int = 0
    error: Optional[ErrorInfo] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class FetchRequest(BaseModel):
    url: str


class ImportRequest(BaseModel):
    upload_id: str
    schema_: Union[str, list, dict] = Field(alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class ClearEverythingResponse(BaseModel):
    success: bool
    message: str


class PreviewResponse(BaseModel):
    success: bool = True
    total_rows: int
    rows: List[dict]
