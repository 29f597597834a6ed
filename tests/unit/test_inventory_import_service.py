"""
Unit tests for the import workflow facade.

Upload bytes are built with openpyxl; catalog and stock collaborators are
in-memory fakes, so these run without a database.

Run: pytest tests/unit/test_inventory_import_service.py -v
"""

from decimal import Decimal
import pytest

from config.settings import get_settings
from models.inventory_import import (
    AcceptSuggestion,
    Bucket,
    ExecutionMode,
    ManualBind,
    MatchKind,
    RowOutcome,
    SessionStatus,
)
from parsers.stock_upload_parser import XLSX_MEDIA_TYPE
from services.inventory_import_service import InventoryImportService
from exceptions import (
    ExecutionRefusedError,
    ImportSessionClosedError,
    ImportSessionNotFoundError,
    MissingColumnsError,
)
from tests.factories import FakeCatalog, FakeStockWriter, make_xlsx


@pytest.fixture
def catalog(catalog_snapshot) -> FakeCatalog:
    return FakeCatalog(catalog_snapshot)


@pytest.fixture
def writer() -> FakeStockWriter:
    return FakeStockWriter()


@pytest.fixture
def service(catalog, writer) -> InventoryImportService:
    return InventoryImportService(catalog=catalog, stock=writer, settings=get_settings())


def upload(service, rows, **kwargs):
    return service.create_preview(make_xlsx(rows, **kwargs), XLSX_MEDIA_TYPE, "stock.xlsx")


MIXED_ROWS = [
    ["Almacén central", "ABC-01", "ABRAZADERA", 5, "UNIDAD", None],
    ["Almacén central", "INC-256EGG", "INCUBADORA", 2, "UNIDAD", None],
    ["Almacén central", "TOR-C01", "TORNILLOS", 12, "CIENTO", None],
    ["Almacén central", "ABX-01", "ABRAZADERA", 3, "UNIDAD", None],
    ["Almacén central", "ZZZ-99", "PRODUCTO DESCONOCIDO", 1, "UNIDAD", None],
]


# ===================
# PREVIEW
# ===================

class TestCreatePreview:
    """Tests for create_preview()"""

    def test_all_exact_rows(self, service):
        preview = upload(service, MIXED_ROWS[:3])

        assert (preview.valid_count, preview.suggested_count, preview.error_count) == (3, 0, 0)
        assert preview.can_execute_complete is True
        assert preview.status == SessionStatus.CLASSIFIED
        assert preview.filename == "stock.xlsx"

    def test_trailing_space_normalized(self, service):
        preview = upload(service, [["Almacén central", "ABC-01 ", None, 5, "UNIDAD", None]])

        row = preview.valid_sample[0]
        assert row.match_kind == MatchKind.NORMALIZED
        assert row.matched_product_id == "prod-abc01"

    def test_typo_suggested(self, service):
        preview = upload(service, [["Almacén central", "ABX-01", None, 5, "UNIDAD", None]])

        row = preview.suggested_sample[0]
        assert row.candidate_product_id == "prod-abc01"
        assert row.similarity_score == 83

    def test_zero_quantity_error(self, service):
        preview = upload(service, [["Almacén central", "ABC-01", None, 0, "UNIDAD", None]])

        assert preview.error_sample[0].error_reason == "invalid quantity"

    def test_catalog_loaded_once_per_batch(self, service, catalog):
        upload(service, MIXED_ROWS)

        assert catalog.snapshot_loads == 1

    def test_session_stored(self, service):
        preview = upload(service, MIXED_ROWS)

        assert service.get_preview(preview.session_id) == preview

    def test_same_file_twice_warns(self, service):
        first = upload(service, MIXED_ROWS[:1])
        second = upload(service, MIXED_ROWS[:1])

        assert first.warnings == []
        assert any(first.session_id in warning for warning in second.warnings)
        assert second.session_id != first.session_id

    def test_batch_error_opens_no_session(self, service, catalog):
        with pytest.raises(MissingColumnsError):
            upload(service, [["x", "y"]], header=["foo", "bar"])

        assert catalog.snapshot_loads == 0


class TestListRows:
    """Tests for list_rows()"""

    def test_filter_by_bucket(self, service):
        preview = upload(service, MIXED_ROWS)

        listing = service.list_rows(preview.session_id, Bucket.VALID)

        assert listing.total == 3
        assert [row.row_index for row in listing.data] == [2, 3, 4]

    def test_all_rows(self, service):
        preview = upload(service, MIXED_ROWS)

        assert service.list_rows(preview.session_id).total == 5

    def test_unknown_session(self, service):
        with pytest.raises(ImportSessionNotFoundError):
            service.list_rows("missing")


# ===================
# CORRECTIONS + EXECUTION
# ===================

class TestWorkflow:
    """Upload, correct, execute."""

    def test_mixed_batch_refused_then_partial(self, service, writer):
        preview = upload(service, MIXED_ROWS)

        with pytest.raises(ExecutionRefusedError):
            service.execute(preview.session_id, ExecutionMode.ALL_PERFECT)
        assert writer.calls == []

        result = service.execute(preview.session_id, ExecutionMode.ONLY_VALID)

        assert result.processed_count == 3
        assert result.skipped_count + result.error_count == 2
        assert [p.code for p in result.products_not_found] == ["ZZZ-99"]

    def test_refusal_keeps_session_open(self, service):
        preview = upload(service, MIXED_ROWS)

        with pytest.raises(ExecutionRefusedError):
            service.execute(preview.session_id, ExecutionMode.ALL_PERFECT)

        assert service.get_preview(preview.session_id).status == SessionStatus.CLASSIFIED

    def test_corrections_persist_into_execution(self, service, writer):
        preview = upload(service, MIXED_ROWS)

        accepted = service.correct(preview.session_id, AcceptSuggestion(row_index=5))
        bound = service.correct(
            preview.session_id, ManualBind(row_index=6, resolved_product_id="prod-tor")
        )

        assert accepted.changed is True
        assert accepted.row.bucket == Bucket.VALID
        assert bound.preview.can_execute_complete is True
        assert bound.preview.status == SessionStatus.CORRECTING

        result = service.execute(preview.session_id, ExecutionMode.ALL_PERFECT)

        assert result.processed_count == 5
        assert all(entry.outcome == RowOutcome.PROCESSED for entry in result.row_outcomes)
        # ABX-01 was accepted as ABC-01 and ZZZ-99 bound to TOR-C01
        [entries] = writer.calls
        quantities = {entry.product_id: entry.quantity for entry in entries}
        assert quantities == {
            "prod-abc01": Decimal("8"),
            "prod-inc256": Decimal("2"),
            "prod-tor": Decimal("13"),
        }

    def test_reject_policy_refuses_all_perfect(self, catalog, writer):
        settings = get_settings().model_copy(update={"import_duplicate_policy": "REJECT"})
        service = InventoryImportService(catalog=catalog, stock=writer, settings=settings)
        preview = upload(service, [MIXED_ROWS[0], MIXED_ROWS[0], MIXED_ROWS[2]])

        assert preview.valid_count == 3
        assert preview.can_execute_complete is False

        with pytest.raises(ExecutionRefusedError):
            service.execute(preview.session_id, ExecutionMode.ALL_PERFECT)
        assert writer.calls == []

        result = service.execute(preview.session_id, ExecutionMode.ONLY_VALID)

        assert result.processed_count == 1
        assert result.error_count == 2

    def test_repeated_correction_unchanged(self, service):
        preview = upload(service, MIXED_ROWS)
        service.correct(preview.session_id, AcceptSuggestion(row_index=5))

        again = service.correct(preview.session_id, AcceptSuggestion(row_index=5))

        assert again.changed is False
        assert again.preview.valid_count == 4

    def test_executed_session_rejects_further_actions(self, service):
        preview = upload(service, MIXED_ROWS[:3])
        service.execute(preview.session_id, ExecutionMode.ONLY_VALID)

        with pytest.raises(ImportSessionClosedError):
            service.execute(preview.session_id, ExecutionMode.ONLY_VALID)
        with pytest.raises(ImportSessionClosedError):
            service.correct(preview.session_id, AcceptSuggestion(row_index=2))

        assert service.get_preview(preview.session_id).status == SessionStatus.EXECUTED

    def test_delete(self, service):
        preview = upload(service, MIXED_ROWS)

        service.delete(preview.session_id)

        with pytest.raises(ImportSessionNotFoundError):
            service.get_preview(preview.session_id)
        with pytest.raises(ImportSessionNotFoundError):
            service.delete(preview.session_id)


class TestCatalogHelpers:
    """Template and search passthroughs."""

    def test_template_lists_snapshot_warehouses(self, service):
        output, filename = service.build_template()

        assert filename.startswith("Plantilla_Stock_")
        assert output.getvalue()[:2] == b"PK"

    def test_search_wraps_results(self, service):
        response = service.search_catalog("ABC", limit=5)

        assert response.query == "ABC"
        assert response.total == 0
