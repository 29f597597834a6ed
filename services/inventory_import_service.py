"""
Inventory import orchestration.

Upload -> extract -> classify -> session -> corrections -> execution.
Every step that reads and writes a session holds that session's lock.
"""

from hashlib import sha256
from io import BytesIO
from typing import Optional
from uuid import uuid4
import structlog

from config.settings import Settings, get_settings
from models.catalog import ProductSearchResponse
from models.inventory_import import (
    Bucket,
    CorrectionAction,
    CorrectionResponse,
    DuplicatePolicy,
    ExecutionMode,
    ExecutionResult,
    ImportSession,
    PreviewResult,
    PreviewRow,
    RowListResponse,
)
from parsers.stock_upload_parser import BatchFile, extract_rows
from services import import_session_service as sessions
from services.catalog_service import get_catalog_service
from services.correction_service import apply_correction
from services.import_execution_service import execute as execute_session
from services.matching_service import ClassificationRules, classify_rows
from services.preview_service import build_preview
from services.stock_service import get_stock_service
from services.stock_template_service import get_stock_template_service
from exceptions import ImportSessionNotFoundError

logger = structlog.get_logger(__name__)


class InventoryImportService:
    """
    Bulk inventory import workflow.

    Catalog and stock collaborators are injectable for tests; by default
    the Supabase-backed singletons are used.
    """

    def __init__(self, catalog=None, stock=None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.catalog = catalog or get_catalog_service()
        self.stock = stock or get_stock_service()

    @property
    def duplicate_policy(self) -> DuplicatePolicy:
        return DuplicatePolicy(self.settings.import_duplicate_policy)

    # ===================
    # PREVIEW
    # ===================

    def create_preview(
        self,
        content: bytes,
        media_type: str,
        filename: Optional[str] = None
    ) -> PreviewResult:
        """
        Parse and classify an uploaded batch, opening a new session.

        Raises:
            Batch-level errors from the parser; nothing is stored for them
        """
        batch = BatchFile(content=content, media_type=media_type, filename=filename)
        rows = extract_rows(batch, self.settings)

        snapshot = self.catalog.load_snapshot()
        classified = classify_rows(
            rows,
            snapshot,
            rules=ClassificationRules.from_settings(self.settings),
            max_workers=self.settings.import_resolver_max_workers,
        )

        file_hash = sha256(content).hexdigest()
        warnings = [
            f"This file was already uploaded in open session {session_id}"
            for session_id in sessions.find_sessions_by_hash(file_hash)
        ]

        session = ImportSession(
            session_id=str(uuid4()),
            filename=filename,
            file_hash=file_hash,
            rows=classified,
            upload_warnings=warnings,
        )
        sessions.store_session(session, self.settings.import_session_ttl_minutes)

        preview = self._preview(session)

        logger.info(
            "import_preview_created",
            session_id=session.session_id,
            filename=filename,
            total=preview.total_rows,
            valid=preview.valid_count,
            suggested=preview.suggested_count,
            errors=preview.error_count
        )

        return preview

    def get_preview(self, session_id: str) -> PreviewResult:
        """Current preview of a session."""
        return self._preview(sessions.load_session(session_id))

    def list_rows(self, session_id: str, bucket: Optional[Bucket] = None) -> RowListResponse:
        """All rows of a session, optionally only one bucket."""
        session = sessions.load_session(session_id)
        rows = [
            PreviewRow.from_classified(row)
            for row in session.rows
            if bucket is None or row.bucket == bucket
        ]
        return RowListResponse(session_id=session_id, bucket=bucket, data=rows, total=len(rows))

    # ===================
    # CORRECTIONS
    # ===================

    def correct(self, session_id: str, action: CorrectionAction) -> CorrectionResponse:
        """Apply one correction and return the row plus refreshed preview."""
        with sessions.session_lock(session_id):
            session = sessions.load_session(session_id)
            row, changed = apply_correction(session, action, self.catalog)
            if changed:
                sessions.store_session(session, self.settings.import_session_ttl_minutes)

        return CorrectionResponse(
            row=PreviewRow.from_classified(row),
            preview=self._preview(session),
            changed=changed,
        )

    # ===================
    # EXECUTION
    # ===================

    def execute(self, session_id: str, mode: ExecutionMode) -> ExecutionResult:
        """
        Commit a session in the given mode.

        A refusal leaves the stored session untouched.
        """
        with sessions.session_lock(session_id):
            session = sessions.load_session(session_id)
            result = execute_session(session, mode, self.stock, self.duplicate_policy)
            sessions.store_session(session, self.settings.import_session_ttl_minutes)

        return result

    def delete(self, session_id: str) -> None:
        """
        Abandon a session.

        Raises:
            ImportSessionNotFoundError: If unknown or expired
        """
        with sessions.session_lock(session_id):
            if not sessions.delete_session(session_id):
                raise ImportSessionNotFoundError(session_id)

    # ===================
    # CATALOG
    # ===================

    def build_template(self) -> tuple[BytesIO, str]:
        """Upload template listing the current active warehouses."""
        snapshot = self.catalog.load_snapshot()
        return get_stock_template_service().generate_template(
            warehouses=[warehouse.name for warehouse in snapshot.warehouses],
            units=list(self.settings.import_allowed_units),
        )

    def search_catalog(self, query: str, limit: int = 10) -> ProductSearchResponse:
        """Ranked products for manual binding."""
        results = self.catalog.search_products(query, limit)
        return ProductSearchResponse(query=query, data=results, total=len(results))

    def _preview(self, session: ImportSession) -> PreviewResult:
        return build_preview(
            session,
            sample_size=self.settings.import_preview_sample_size,
            ttl_minutes=self.settings.import_session_ttl_minutes,
            duplicate_policy=self.duplicate_policy,
        )


# Singleton instance
_inventory_import_service: Optional[InventoryImportService] = None


def get_inventory_import_service() -> InventoryImportService:
    """Get or create InventoryImportService instance."""
    global _inventory_import_service
    if _inventory_import_service is None:
        _inventory_import_service = InventoryImportService()
    return _inventory_import_service
