"""
API tests for /api/inventory-import.

The workflow service is swapped for one backed by in-memory fakes.
"""

from unittest.mock import patch
import pytest

from config.settings import get_settings
from services.inventory_import_service import InventoryImportService
from tests.factories import FakeCatalog, FakeStockWriter, make_xlsx

BASE = "/api/inventory-import"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ROWS = [
    ["Almacén central", "ABC-01", "ABRAZADERA", 5, "UNIDAD", None],
    ["Almacén central", "ABX-01", "ABRAZADERA", 3, "UNIDAD", None],
    ["Almacén central", "ZZZ-99", "DESCONOCIDO", 1, "UNIDAD", None],
]


@pytest.fixture
def writer() -> FakeStockWriter:
    return FakeStockWriter()


@pytest.fixture
def client(test_client, catalog_snapshot, writer):
    service = InventoryImportService(
        catalog=FakeCatalog(catalog_snapshot), stock=writer, settings=get_settings()
    )
    with patch("routes.inventory_import.get_inventory_import_service", return_value=service):
        yield test_client


def post_upload(client, content=None, filename="stock.xlsx", media_type=XLSX):
    return client.post(
        f"{BASE}/preview",
        files={"file": (filename, content if content is not None else make_xlsx(ROWS), media_type)},
    )


class TestPreviewEndpoints:
    """Upload and session reads."""

    def test_upload(self, client):
        response = post_upload(client)

        assert response.status_code == 200
        body = response.json()
        assert body["total_rows"] == 3
        assert (body["valid_count"], body["suggested_count"], body["error_count"]) == (1, 1, 1)
        assert body["can_execute_partial"] is True
        assert body["can_execute_complete"] is False

    def test_unsupported_type(self, client):
        response = post_upload(client, content=b"%PDF", filename="stock.pdf", media_type="application/pdf")

        assert response.status_code == 415
        assert response.json()["error"]["code"] == "UNSUPPORTED_MEDIA_TYPE"

    def test_get_session_and_rows(self, client):
        session_id = post_upload(client).json()["session_id"]

        preview = client.get(f"{BASE}/sessions/{session_id}")
        rows = client.get(f"{BASE}/sessions/{session_id}/rows", params={"bucket": "ERROR"})

        assert preview.status_code == 200
        assert rows.json()["total"] == 1
        assert rows.json()["data"][0]["product_code"] == "ZZZ-99"

    def test_unknown_session(self, client):
        response = client.get(f"{BASE}/sessions/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "IMPORT_SESSION_NOT_FOUND"


class TestCorrectionEndpoint:
    """POST /sessions/{id}/corrections"""

    def test_accept_suggestion(self, client):
        session_id = post_upload(client).json()["session_id"]

        response = client.post(
            f"{BASE}/sessions/{session_id}/corrections",
            json={"action": "accept_suggestion", "row_index": 3},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["changed"] is True
        assert body["row"]["bucket"] == "VALID"
        assert body["preview"]["valid_count"] == 2

    def test_manual_bind(self, client):
        session_id = post_upload(client).json()["session_id"]

        response = client.post(
            f"{BASE}/sessions/{session_id}/corrections",
            json={"action": "manual_bind", "row_index": 4, "resolved_product_id": "prod-tor"},
        )

        assert response.status_code == 200
        assert response.json()["row"]["match_kind"] == "MANUAL_CORRECTION"

    def test_stale_state_conflict(self, client):
        session_id = post_upload(client).json()["session_id"]

        response = client.post(
            f"{BASE}/sessions/{session_id}/corrections",
            json={"action": "accept_suggestion", "row_index": 4},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STALE_ROW_STATE"

    def test_unknown_action_is_validation_error(self, client):
        session_id = post_upload(client).json()["session_id"]

        response = client.post(
            f"{BASE}/sessions/{session_id}/corrections",
            json={"action": "delete_row", "row_index": 4},
        )

        assert response.status_code == 422


class TestExecuteEndpoint:
    """POST /sessions/{id}/execute"""

    def test_all_perfect_refused(self, client, writer):
        session_id = post_upload(client).json()["session_id"]

        response = client.post(f"{BASE}/sessions/{session_id}/execute", json={"mode": "ALL_PERFECT"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EXECUTION_REFUSED"
        assert writer.calls == []

    def test_only_valid_default(self, client):
        session_id = post_upload(client).json()["session_id"]

        response = client.post(f"{BASE}/sessions/{session_id}/execute")

        assert response.status_code == 200
        body = response.json()
        assert body["mode"] == "ONLY_VALID"
        assert body["processed_count"] == 1
        assert body["skipped_count"] == 1
        assert body["error_count"] == 1

    def test_second_execution_conflict(self, client):
        session_id = post_upload(client).json()["session_id"]
        client.post(f"{BASE}/sessions/{session_id}/execute")

        response = client.post(f"{BASE}/sessions/{session_id}/execute")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "IMPORT_SESSION_CLOSED"


class TestOtherEndpoints:
    """Delete, template and search."""

    def test_delete(self, client):
        session_id = post_upload(client).json()["session_id"]

        assert client.delete(f"{BASE}/sessions/{session_id}").status_code == 204
        assert client.delete(f"{BASE}/sessions/{session_id}").status_code == 404

    def test_template_download(self, client):
        response = client.get(f"{BASE}/template")

        assert response.status_code == 200
        assert "Plantilla_Stock_" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_search_requires_query(self, client):
        assert client.get(f"{BASE}/catalog/search").status_code == 422

    def test_search(self, client):
        response = client.get(f"{BASE}/catalog/search", params={"q": "ABC"})

        assert response.status_code == 200
        assert response.json()["total"] == 0
