"""
Spreadsheet parsers module.
"""

from parsers.stock_upload_parser import (
    BatchFile,
    detect_format,
    validate_batch,
    extract_rows,
)

__all__ = [
    "BatchFile",
    "detect_format",
    "validate_batch",
    "extract_rows",
]
