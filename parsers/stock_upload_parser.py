"""
Stock upload parser.

Turns an uploaded spreadsheet into RawRow objects in file order.

Expected columns (template order, names matched without accents/case):
ALMACÉN | CÓDIGO | DESCRIPCIÓN | CANTIDAD | U. MEDIDA | STOCK MÍNIMO

Batch-level problems (type, size, unreadable content, missing columns,
row cap) raise before any row is produced. Row-level problems are not
checked here: a row with a missing code or quantity is still emitted so
the classifier can report it.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from io import BytesIO, StringIO
from typing import Any, Optional
import math
import numbers
import re
import structlog

import pandas as pd

from config.settings import Settings, get_settings
from exceptions import (
    UnsupportedBatchTypeError,
    BatchTooLargeError,
    EmptyBatchError,
    TooManyRowsError,
    ExcelParseError,
    MissingColumnsError,
)
from models.inventory_import import RawRow
from utils.text_utils import clean_cell, normalize_code

logger = structlog.get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MEDIA_TYPE = "application/vnd.ms-excel"

MEDIA_TYPE_FORMATS = {
    XLSX_MEDIA_TYPE: "xlsx",
    XLS_MEDIA_TYPE: "xls",
    "text/csv": "csv",
    "application/csv": "csv",
}
EXTENSION_FORMATS = {
    ".xlsx": "xlsx",
    ".xls": "xls",
    ".csv": "csv",
}
# Browsers send these when they do not know the type; the extension decides.
GENERIC_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

HEADER_SCAN_ROWS = 10

# Text quantities: "2,5", "1,234.5", "1.234,5", "1.234.567"
DECIMAL_COMMA = re.compile(r"^[+-]?\d+,\d+$")
COMMA_GROUPED = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
DOT_GROUPED = re.compile(r"^[+-]?\d{1,3}(\.\d{3})+(,\d+)?$")

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "warehouse_label": ("ALMACÉN", "ALMACEN CODIGO", "WAREHOUSE", "BODEGA"),
    "product_code": ("CÓDIGO", "CODIGO PRODUCTO", "CODE", "PRODUCT CODE", "SKU"),
    "description": ("DESCRIPCIÓN", "DESCRIPTION", "PRODUCTO"),
    "quantity": ("CANTIDAD", "QUANTITY", "STOCK ACTUAL"),
    "unit_label": ("U. MEDIDA", "UNIDAD DE MEDIDA", "UNIDAD MEDIDA", "UNIT", "UOM"),
    "minimum_stock": ("STOCK MÍNIMO", "STOCK MIN", "MINIMUM STOCK"),
}
REQUIRED_COLUMNS = ("product_code", "quantity")

_ALIAS_LOOKUP = {
    normalize_code(alias): field_name
    for field_name, aliases in COLUMN_ALIASES.items()
    for alias in aliases
}


@dataclass(frozen=True)
class BatchFile:
    """Uploaded spreadsheet as received."""
    content: bytes
    media_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if not self.filename or "." not in self.filename:
            return ""
        return "." + self.filename.rsplit(".", 1)[-1].lower()


def detect_format(batch: BatchFile) -> str:
    """
    Decide how to read the batch: "xlsx", "xls" or "csv".

    Raises:
        UnsupportedBatchTypeError: If neither media type nor extension is a spreadsheet
    """
    media_type = (batch.media_type or "").split(";")[0].strip().lower()
    by_extension = EXTENSION_FORMATS.get(batch.extension)

    if media_type in MEDIA_TYPE_FORMATS:
        detected = MEDIA_TYPE_FORMATS[media_type]
        # Windows reports .csv files as application/vnd.ms-excel
        if detected == "xls" and by_extension == "csv":
            return "csv"
        return detected

    if media_type in GENERIC_MEDIA_TYPES and by_extension:
        return by_extension

    raise UnsupportedBatchTypeError(
        media_type=batch.media_type,
        filename=batch.filename,
        accepted=sorted(MEDIA_TYPE_FORMATS),
    )


def validate_batch(batch: BatchFile, settings: Optional[Settings] = None) -> str:
    """
    Check type and size before any parsing.

    Returns:
        Detected format

    Raises:
        UnsupportedBatchTypeError, BatchTooLargeError, EmptyBatchError
    """
    settings = settings or get_settings()

    file_format = detect_format(batch)

    if batch.size > settings.import_max_file_bytes:
        raise BatchTooLargeError(batch.size, settings.import_max_file_bytes)

    if batch.size == 0:
        raise EmptyBatchError("Uploaded file is empty")

    return file_format


def extract_rows(batch: BatchFile, settings: Optional[Settings] = None) -> list[RawRow]:
    """
    Validate and parse a batch into RawRows.

    Args:
        batch: Uploaded file
        settings: Limits to apply (defaults to application settings)

    Returns:
        RawRows in file order; row_index is the spreadsheet row number

    Raises:
        UnsupportedBatchTypeError, BatchTooLargeError, EmptyBatchError,
        ExcelParseError, MissingColumnsError, TooManyRowsError
    """
    settings = settings or get_settings()
    file_format = validate_batch(batch, settings)

    logger.info(
        "parsing_stock_upload",
        filename=batch.filename,
        file_format=file_format,
        size=batch.size
    )

    df = _read_frame(batch.content, file_format)
    header_position, columns = _locate_header(df)

    rows: list[RawRow] = []
    for position in range(header_position + 1, len(df)):
        cells = {
            field_name: df.iat[position, column]
            for field_name, column in columns.items()
        }

        # Blank lines are layout, not rows
        if all(_is_blank(value) for value in cells.values()):
            continue

        rows.append(RawRow(
            row_index=position + 1,
            warehouse_label=_text(cells.get("warehouse_label")),
            product_code=_text(cells.get("product_code")),
            description=clean_cell(_text(cells.get("description"))),
            quantity=_decimal(cells.get("quantity")),
            unit_label=_text(cells.get("unit_label")),
            minimum_stock=_decimal(cells.get("minimum_stock")),
        ))

    if not rows:
        raise EmptyBatchError()

    if len(rows) > settings.import_max_rows:
        raise TooManyRowsError(len(rows), settings.import_max_rows)

    logger.info(
        "stock_upload_parsed",
        filename=batch.filename,
        row_count=len(rows),
        header_row=header_position + 1
    )

    return rows


# ===================
# HELPERS
# ===================

def _read_frame(content: bytes, file_format: str) -> pd.DataFrame:
    """Read the first sheet (or the CSV) without header inference."""
    try:
        if file_format == "csv":
            return _read_csv(content)
        engine = "openpyxl" if file_format == "xlsx" else "xlrd"
        return pd.read_excel(BytesIO(content), header=None, dtype=object, engine=engine)
    except ExcelParseError:
        raise
    except Exception as e:
        logger.error("stock_upload_read_failed", file_format=file_format, error=str(e))
        raise ExcelParseError(
            message="Failed to read spreadsheet",
            details={"format": file_format, "original_error": str(e)}
        )


def _read_csv(content: bytes) -> pd.DataFrame:
    """Read CSV text; the separator is ';' when the first line has more of them than ','."""
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            text = content.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    else:
        raise ExcelParseError(message="CSV file is not valid text")

    return pd.read_csv(
        StringIO(text),
        header=None,
        dtype=str,
        sep=_csv_separator(text),
        skip_blank_lines=False,
    )


def _csv_separator(text: str) -> str:
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    return ";" if first_line.count(";") > first_line.count(",") else ","


def _locate_header(df: pd.DataFrame) -> tuple[int, dict[str, int]]:
    """
    Find the header row and map field names to column positions.

    Scans the first rows for a product code column; the first alias hit per
    field wins.
    """
    first_row: list[str] = []

    for position in range(min(HEADER_SCAN_ROWS, len(df))):
        columns: dict[str, int] = {}
        for column, value in enumerate(df.iloc[position]):
            if _is_blank(value):
                continue
            field_name = _ALIAS_LOOKUP.get(normalize_code(str(value)))
            if field_name and field_name not in columns:
                columns[field_name] = column

        if position == 0:
            first_row = [str(v) for v in df.iloc[position] if not _is_blank(v)]

        if "product_code" in columns:
            missing = [name for name in REQUIRED_COLUMNS if name not in columns]
            if missing:
                raise MissingColumnsError(
                    missing=[COLUMN_ALIASES[name][0] for name in missing],
                    found=[str(v) for v in df.iloc[position] if not _is_blank(v)],
                )
            logger.debug("stock_upload_header_found", row=position + 1, columns=sorted(columns))
            return position, columns

    raise MissingColumnsError(
        missing=[COLUMN_ALIASES[name][0] for name in REQUIRED_COLUMNS],
        found=first_row,
    )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> Optional[str]:
    """Cell as text, untrimmed; None for blank cells."""
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # Numeric codes typed without quotes come back as floats
        return str(int(value))
    return str(value)


def _decimal(value: Any) -> Optional[Decimal]:
    """Cell as a finite Decimal; None for blank or non-numeric cells."""
    if _is_blank(value) or isinstance(value, bool):
        return None

    if isinstance(value, numbers.Real):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))

    text = str(value).strip().replace(" ", "").replace("\u00a0", "")
    if DECIMAL_COMMA.match(text):
        text = text.replace(",", ".")
    elif COMMA_GROUPED.match(text):
        text = text.replace(",", "")
    elif DOT_GROUPED.match(text) and ("," in text or text.count(".") > 1):
        text = text.replace(".", "").replace(",", ".")

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None

    return number if number.is_finite() else None
