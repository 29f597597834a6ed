"""
Inventory import API routes.

Upload a stock spreadsheet, review the classified rows, correct them,
then commit the admissible rows to stock.
"""

from fastapi import APIRouter, Query, UploadFile, File
from fastapi.responses import JSONResponse, Response, StreamingResponse
from typing import Optional
import structlog

from models.catalog import ProductSearchResponse
from models.inventory_import import (
    Bucket,
    CorrectionRequest,
    CorrectionResponse,
    ExecutionRequest,
    ExecutionResult,
    PreviewResult,
    RowListResponse,
)
from services.inventory_import_service import get_inventory_import_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# TEMPLATE
# ===================

@router.get("/template")
async def download_template():
    """
    Download the blank upload template.

    Includes a "Validaciones" sheet with the active warehouses and
    allowed units.
    """
    try:
        output, filename = get_inventory_import_service().build_template()
        return StreamingResponse(
            output,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)


# ===================
# PREVIEW
# ===================

@router.post("/preview", response_model=PreviewResult)
async def create_preview(file: UploadFile = File(...)):
    """
    Upload a stock spreadsheet and classify every row.

    Returns counts, samples and a session_id for corrections and execution.

    Raises:
        413: File too large
        415: Not a spreadsheet
        422: Unreadable, empty, missing columns or too many rows
    """
    logger.info(
        "inventory_import_upload_started",
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        content = await file.read()
        return get_inventory_import_service().create_preview(
            content=content,
            media_type=file.content_type or "",
            filename=file.filename,
        )

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}", response_model=PreviewResult)
async def get_session(session_id: str):
    """
    Get the current preview of a session.

    Raises:
        404: Session not found or expired
    """
    try:
        return get_inventory_import_service().get_preview(session_id)

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}/rows", response_model=RowListResponse)
async def list_session_rows(
    session_id: str,
    bucket: Optional[Bucket] = Query(None, description="Only rows in this bucket")
):
    """
    List every row of a session (not sampled).

    Raises:
        404: Session not found or expired
    """
    try:
        return get_inventory_import_service().list_rows(session_id, bucket)

    except Exception as e:
        return handle_error(e)


# ===================
# CORRECTIONS
# ===================

@router.post("/sessions/{session_id}/corrections", response_model=CorrectionResponse)
async def correct_row(session_id: str, request: CorrectionRequest):
    """
    Apply one correction.

    Body is either {"action": "accept_suggestion", "row_index": N} or
    {"action": "manual_bind", "row_index": N, "resolved_product_id": "...",
    "resolved_warehouse_id": "..."}.

    Raises:
        404: Session, row, product or warehouse not found
        409: Row is not in the state the action needs, or session executed
    """
    try:
        return get_inventory_import_service().correct(session_id, request.root)

    except Exception as e:
        return handle_error(e)


@router.get("/catalog/search", response_model=ProductSearchResponse)
async def search_catalog(
    q: str = Query(..., min_length=1, description="Code or description text"),
    limit: int = Query(10, ge=1, le=50, description="Max results")
):
    """Search the product catalog for manual binding."""
    try:
        return get_inventory_import_service().search_catalog(q, limit)

    except Exception as e:
        return handle_error(e)


# ===================
# EXECUTION
# ===================

@router.post("/sessions/{session_id}/execute", response_model=ExecutionResult)
async def execute_session(session_id: str, request: Optional[ExecutionRequest] = None):
    """
    Commit the session.

    ONLY_VALID (default) commits VALID rows and skips the rest.
    ALL_PERFECT commits only when every row is VALID.

    Raises:
        404: Session not found or expired
        409: Mode refused or session already executed
    """
    request = request or ExecutionRequest()

    try:
        return get_inventory_import_service().execute(session_id, request.mode)

    except Exception as e:
        return handle_error(e)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    """
    Abandon a session.

    Raises:
        404: Session not found or expired
    """
    try:
        get_inventory_import_service().delete(session_id)
        return Response(status_code=204)

    except Exception as e:
        return handle_error(e)
