"""
Exception hierarchy for the upload → infer → confirm → import pipeline.

Every error carries an ``error_kind`` so the routing layer can translate it
into an HTTP status and a ``{errorKind, message}`` body.
"""
from typing import Any, Dict


class PipelineError(Exception):
    """Base class for all caller-visible pipeline failures."""

    error_kind = "PipelineError"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        return {"errorKind": self.error_kind, "message": self.message}


class NotFound(PipelineError):
    """A cache key or stored schema does not exist."""

    error_kind = "NotFound"
    status_code = 404


class SourceUnreadable(PipelineError):
    """The source location could not be opened, fetched or decoded."""

    error_kind = "SourceUnreadable"
    status_code = 400


class EmptySource(PipelineError):
    """The source opened fine but holds no parsable data rows."""

    error_kind = "EmptySource"
    status_code = 400


class InvalidSchema(PipelineError):
    """A confirmed schema is malformed (bad JSON, duplicate names, unknown types)."""

    error_kind = "InvalidSchema"
    status_code = 400


class ImportAlreadyInProgress(PipelineError):
    """Raised when an import is running and the request would interfere with it."""

    error_kind = "ImportAlreadyInProgress"
    status_code = 409

    def __init__(self, message: str = "An import is already running; poll /import/status and retry later."):
        super().__init__(message)
