"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,

    # Catalog
    ProductNotFoundError,
    WarehouseNotFoundError,

    # Batch upload
    UnsupportedBatchTypeError,
    BatchTooLargeError,
    EmptyBatchError,
    TooManyRowsError,
    ExcelParseError,
    MissingColumnsError,

    # Import sessions
    ImportSessionNotFoundError,
    ImportSessionClosedError,
    RowNotFoundError,
    CorrectionRejectedError,
    ExecutionRefusedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",

    # Catalog
    "ProductNotFoundError",
    "WarehouseNotFoundError",

    # Batch upload
    "UnsupportedBatchTypeError",
    "BatchTooLargeError",
    "EmptyBatchError",
    "TooManyRowsError",
    "ExcelParseError",
    "MissingColumnsError",

    # Import sessions
    "ImportSessionNotFoundError",
    "ImportSessionClosedError",
    "RowNotFoundError",
    "CorrectionRejectedError",
    "ExecutionRefusedError",
]
