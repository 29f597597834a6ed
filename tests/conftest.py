"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Settings require Supabase credentials at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator

from models.catalog import CatalogProduct, CatalogWarehouse, CatalogSnapshot
from services import import_session_service

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None, count: int = None):
        self._client = client
        self._table = table
        self._data = data or []
        self._count = count
        self._operation = "select"
        self._payload = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        rows = data if isinstance(data, list) else [data]
        self._data = [
            {**item, "id": f"test-uuid-{i}", "created_at": datetime.utcnow().isoformat() + "Z"}
            for i, item in enumerate(rows, start=1)
        ]
        return self

    def upsert(self, data, **kwargs):
        self._operation = "upsert"
        self._payload = data
        self._data = data if isinstance(data, list) else [data]
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        self._data = [{**item, **data} for item in self._data] or [data]
        return self

    def delete(self):
        self._operation = "delete"
        return self

    def eq(self, column, value):
        return self

    def neq(self, column, value):
        return self

    def in_(self, column, values):
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        self._client.record(self._table, self._operation, self._payload)
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, client: "MockSupabaseClient", name: str, data: list = None, count: int = None):
        self._client = client
        self._name = name
        self._data = data or []
        self._count = count

    def _query(self) -> MockSupabaseQuery:
        return MockSupabaseQuery(self._client, self._name, self._data.copy(), self._count)

    def select(self, *args, **kwargs):
        return self._query()

    def insert(self, data):
        return self._query().insert(data)

    def upsert(self, data, **kwargs):
        return self._query().upsert(data, **kwargs)

    def update(self, data):
        return self._query().update(data)

    def delete(self):
        return self._query().delete()


class MockSupabaseClient:
    """
    Mock Supabase client.

    Records every executed write as (table, operation, payload) and can be
    told to fail a table/operation pair.
    """

    def __init__(self):
        self._tables = {}
        self._failures: dict[tuple[str, str], object] = {}
        self.calls: list[tuple[str, str, object]] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def fail_on(self, table_name: str, operation: str, when=None):
        """
        Make an operation raise.

        Args:
            when: Optional predicate on the payload; fails every call if None
        """
        self._failures[(table_name, operation)] = when or (lambda payload: True)

    def record(self, table_name: str, operation: str, payload):
        should_fail = self._failures.get((table_name, operation))
        if should_fail is not None and should_fail(payload):
            raise Exception(f"{operation} on {table_name} failed")
        if operation != "select":
            self.calls.append((table_name, operation, payload))

    def writes(self, table_name: str, operation: str) -> list:
        """Payloads of successful writes to a table."""
        return [payload for table, op, payload in self.calls if table == table_name and op == operation]

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseTable(self, name, config["data"], config["count"])


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "code": "ABC-01", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.stock_service.get_supabase_client", return_value=mock_supabase), \
                    patch("services.stock_service.get_admin_client", return_value=None):
                yield mock_supabase


@pytest.fixture(autouse=True)
def clear_import_sessions() -> Generator:
    """Every test starts with an empty session store."""
    import_session_service.clear_sessions()
    yield
    import_session_service.clear_sessions()


@pytest.fixture
def sample_products_data() -> list:
    """Catalog product rows as stored in the products table."""
    return [
        {
            "id": "prod-abc01",
            "code": "ABC-01",
            "description": "ABRAZADERA METALICA 1/2",
            "brand": "FERREMAX",
            "unit": "UNIDAD",
            "active": True
        },
        {
            "id": "prod-inc256",
            "code": "INC-256EGG",
            "description": "INCUBADORA DE 256 EGG",
            "brand": "AVITEC",
            "unit": "UNIDAD",
            "active": True
        },
        {
            "id": "prod-tor",
            "code": "TOR-C01",
            "description": "TORNILLOS AUTORROSCANTES 3/4",
            "brand": None,
            "unit": "CIENTO",
            "active": True
        },
    ]


@pytest.fixture
def sample_warehouses_data() -> list:
    """Warehouse rows as stored in the warehouses table."""
    return [
        {"id": "wh-central", "name": "Almacén central", "code": "ALM-CEN", "active": True},
        {"id": "wh-nuevo", "name": "Almacén nuevo", "code": "ALM-NUE", "active": True},
    ]


@pytest.fixture
def catalog_snapshot(sample_products_data, sample_warehouses_data) -> CatalogSnapshot:
    """Snapshot built from the sample catalog."""
    return CatalogSnapshot(
        products=tuple(
            CatalogProduct(
                id=p["id"], code=p["code"], description=p["description"],
                brand=p["brand"], unit=p["unit"]
            )
            for p in sample_products_data
        ),
        warehouses=tuple(
            CatalogWarehouse(id=w["id"], name=w["name"], code=w["code"])
            for w in sample_warehouses_data
        ),
    )


@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Lifespan is not run, so no database connection is attempted.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
