"""
Custom exception classes for the application.

Every error raised to the API carries a code, a message, an HTTP status
and a details dict; see AppError.to_dict() for the response body.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None,
        status_code: int = 422
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details
        )


class ConflictError(AppError):
    """Conflict with current resource state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CATALOG ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found in the catalog."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class WarehouseNotFoundError(NotFoundError):
    """Warehouse not found in the directory."""

    def __init__(self, warehouse_id: str):
        super().__init__(
            resource="Warehouse",
            identifier=warehouse_id,
            code="WAREHOUSE_NOT_FOUND"
        )


# ===================
# BATCH ERRORS
# ===================

class UnsupportedBatchTypeError(ValidationError):
    """Upload is not a spreadsheet format we read (415)."""

    def __init__(self, media_type: str, filename: Optional[str], accepted: list[str]):
        super().__init__(
            code="UNSUPPORTED_MEDIA_TYPE",
            message="File must be an Excel (.xlsx, .xls) or CSV spreadsheet",
            status_code=415,
            details={"media_type": media_type, "filename": filename, "accepted": accepted}
        )


class BatchTooLargeError(ValidationError):
    """Upload exceeds the configured byte limit (413)."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            code="FILE_TOO_LARGE",
            message=f"File is {size} bytes; maximum is {max_size} bytes",
            status_code=413,
            details={"size": size, "max_size": max_size}
        )


class EmptyBatchError(ValidationError):
    """Upload has no content or no data rows."""

    def __init__(self, message: str = "File contains no inventory rows"):
        super().__init__(code="EMPTY_BATCH", message=message)


class TooManyRowsError(ValidationError):
    """Upload has more data rows than allowed."""

    def __init__(self, row_count: int, max_rows: int):
        super().__init__(
            code="TOO_MANY_ROWS",
            message=f"Cannot process more than {max_rows} rows at once",
            details={"row_count": row_count, "max_rows": max_rows}
        )


class ExcelParseError(ValidationError):
    """Spreadsheet content could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="EXCEL_PARSE_ERROR",
            message=message,
            details=details
        )


class MissingColumnsError(ValidationError):
    """Required columns are absent from the header row."""

    def __init__(self, missing: list[str], found: list[str]):
        super().__init__(
            code="MISSING_COLUMNS",
            message=f"Missing required columns: {', '.join(missing)}",
            details={"missing": missing, "found": found}
        )


# ===================
# IMPORT SESSION ERRORS
# ===================

class ImportSessionNotFoundError(NotFoundError):
    """Import session expired or never existed."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class ImportSessionClosedError(ConflictError):
    """Import session was already executed."""

    def __init__(self, session_id: str, status: str):
        super().__init__(
            code="IMPORT_SESSION_CLOSED",
            message="Import session was already executed",
            details={"session_id": session_id, "status": status}
        )


class RowNotFoundError(NotFoundError):
    """No row with this index in the session."""

    def __init__(self, row_index: int):
        super().__init__(
            resource="Import row",
            identifier=str(row_index),
            code="IMPORT_ROW_NOT_FOUND"
        )


class CorrectionRejectedError(ConflictError):
    """Correction does not fit the row's current state."""

    def __init__(self, row_index: int, action: str, reason: str, bucket: str):
        super().__init__(
            code="STALE_ROW_STATE",
            message=f"Cannot {action.replace('_', ' ')} on row {row_index}: {reason}",
            details={"row_index": row_index, "action": action, "bucket": bucket, "reason": reason}
        )


class ExecutionRefusedError(ConflictError):
    """Execution mode is not admissible for the current rows."""

    def __init__(
        self,
        message: str,
        valid_count: int,
        suggested_count: int,
        error_count: int,
        code: str = "EXECUTION_REFUSED"
    ):
        super().__init__(
            code=code,
            message=message,
            details={
                "valid_count": valid_count,
                "suggested_count": suggested_count,
                "error_count": error_count,
            }
        )
