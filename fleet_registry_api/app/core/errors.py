"""
Error kinds raised by the services.

Every error the API reports on purpose derives from
``FleetRegistryError`` and carries the HTTP status and a short code.
A single exception handler registered in ``main`` turns them into JSON
responses.  ``DuplicateKeyConflict`` is different: it is the storage
layer's own uniqueness signal and is translated into ``DuplicateKey``
by the duplicate-key guard before it can reach a caller.
"""

from typing import Any, Dict, Optional


class FleetRegistryError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class InvalidReference(FleetRegistryError):
    """A malformed identifier was supplied where a reference key is required."""

    status_code = 400
    code = "invalid_reference"


class NotFound(FleetRegistryError):
    status_code = 404
    code = "not_found"


class DuplicateKey(FleetRegistryError):
    """A uniqueness-constrained field already holds the submitted value."""

    status_code = 409
    code = "duplicate_key"


class ExportFailed(FleetRegistryError):
    """Encoding failed before any byte reached the sink."""

    status_code = 500
    code = "export_failed"

    def __init__(self, export_format: str, rows_processed: int, reason: str) -> None:
        super().__init__(
            f"{export_format} export failed after {rows_processed} rows: {reason}",
            {"format": export_format, "rows_processed": rows_processed},
        )
        self.export_format = export_format
        self.rows_processed = rows_processed


class DuplicateKeyConflict(Exception):
    """Raised by the record store when a unique index rejects a write."""

    def __init__(self, collection: str, field: Optional[str] = None) -> None:
        super().__init__(f"unique constraint violated in {collection}" + (f" on {field}" if field else ""))
        self.collection = collection
        self.field = field
