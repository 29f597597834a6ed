"""
Test data factories.

Uses factory pattern to generate consistent test data.
"""

from decimal import Decimal
from io import BytesIO
from typing import Optional
from uuid import uuid4

from openpyxl import Workbook

from exceptions import ProductNotFoundError, WarehouseNotFoundError
from models.catalog import CatalogProduct, CatalogWarehouse, CatalogSnapshot
from models.inventory_import import (
    ClassifiedRow,
    ErrorState,
    ImportSession,
    MatchKind,
    ProductMatch,
    RawRow,
    SuggestedState,
    Suggestion,
    ValidState,
    WarehouseMatch,
    ERROR_PRODUCT_NOT_FOUND,
)
from services.stock_service import StockWriteReport

TEMPLATE_HEADER = ["ALMACÉN", "CÓDIGO", "DESCRIPCIÓN", "CANTIDAD", "U. MEDIDA", "STOCK MÍNIMO"]


class RawRowFactory:
    """
    Factory for RawRow objects.

    Usage:
        row = RawRowFactory.create(product_code="ABC-01", quantity="5")
        rows = RawRowFactory.create_batch(3)
    """

    _counter = 1

    @classmethod
    def _next_index(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        row_index: Optional[int] = None,
        warehouse_label: Optional[str] = "Almacén central",
        product_code: Optional[str] = "ABC-01",
        description: Optional[str] = "ABRAZADERA METALICA 1/2",
        quantity="10",
        unit_label: Optional[str] = "UNIDAD",
        minimum_stock=None,
    ) -> RawRow:
        return RawRow(
            row_index=row_index or cls._next_index(),
            warehouse_label=warehouse_label,
            product_code=product_code,
            description=description,
            quantity=Decimal(str(quantity)) if quantity is not None else None,
            unit_label=unit_label,
            minimum_stock=Decimal(str(minimum_stock)) if minimum_stock is not None else None,
        )

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list[RawRow]:
        return [cls.create(row_index=i + 2, **overrides) for i in range(count)]


class CatalogFactory:
    """Factory for catalog snapshots."""

    @classmethod
    def product(cls, code: str, id: Optional[str] = None, description: Optional[str] = None) -> CatalogProduct:
        return CatalogProduct(id=id or f"prod-{uuid4().hex[:8]}", code=code, description=description)

    @classmethod
    def warehouse(cls, name: str, id: Optional[str] = None, code: Optional[str] = None) -> CatalogWarehouse:
        return CatalogWarehouse(id=id or f"wh-{uuid4().hex[:8]}", name=name, code=code)

    @classmethod
    def snapshot(cls, products: list, warehouses: list) -> CatalogSnapshot:
        return CatalogSnapshot(products=tuple(products), warehouses=tuple(warehouses))


class ClassifiedRowFactory:
    """
    Factory for ClassifiedRow objects in a given bucket.

    Usage:
        valid = ClassifiedRowFactory.valid(row_index=2)
        suggested = ClassifiedRowFactory.suggested(row_index=3)
        error = ClassifiedRowFactory.error(row_index=4)
    """

    @classmethod
    def valid(
        cls,
        row_index: int,
        product_id: str = "prod-abc01",
        code: str = "ABC-01",
        warehouse_id: str = "wh-central",
        warehouse_name: str = "Almacén central",
        quantity="10",
        minimum_stock=None,
        match_kind: MatchKind = MatchKind.EXACT,
    ) -> ClassifiedRow:
        return ClassifiedRow(
            row=RawRowFactory.create(
                row_index=row_index,
                warehouse_label=warehouse_name,
                product_code=code,
                quantity=quantity,
                minimum_stock=minimum_stock,
            ),
            state=ValidState(
                product=ProductMatch(product_id=product_id, code=code, match_kind=match_kind),
                warehouse=WarehouseMatch(
                    warehouse_id=warehouse_id, name=warehouse_name, match_kind=MatchKind.EXACT
                ),
            ),
        )

    @classmethod
    def suggested(
        cls,
        row_index: int,
        typed_code: str = "ABX-01",
        candidate_id: str = "prod-abc01",
        candidate_code: str = "ABC-01",
        score: int = 83,
    ) -> ClassifiedRow:
        return ClassifiedRow(
            row=RawRowFactory.create(row_index=row_index, product_code=typed_code),
            state=SuggestedState(
                product_suggestion=Suggestion(
                    candidate_id=candidate_id,
                    candidate_label=candidate_code,
                    similarity_score=score,
                ),
                warehouse=WarehouseMatch(
                    warehouse_id="wh-central", name="Almacén central", match_kind=MatchKind.EXACT
                ),
            ),
        )

    @classmethod
    def error(
        cls,
        row_index: int,
        product_code: str = "ZZZ-99",
        description: str = "PRODUCTO DESCONOCIDO",
        reasons: Optional[list[str]] = None,
        warehouse_label: str = "Almacén central",
        warehouse_matched: bool = True,
        quantity="10",
    ) -> ClassifiedRow:
        reasons = reasons or [ERROR_PRODUCT_NOT_FOUND]
        return ClassifiedRow(
            row=RawRowFactory.create(
                row_index=row_index,
                product_code=product_code,
                description=description,
                warehouse_label=warehouse_label,
                quantity=quantity,
            ),
            state=ErrorState(
                error_reason=reasons[0],
                error_details=reasons,
                warehouse=(
                    WarehouseMatch(
                        warehouse_id="wh-central", name="Almacén central", match_kind=MatchKind.EXACT
                    )
                    if warehouse_matched else None
                ),
            ),
        )


def make_session(rows: list[ClassifiedRow], session_id: Optional[str] = None) -> ImportSession:
    """Session over already classified rows."""
    return ImportSession(
        session_id=session_id or str(uuid4()),
        filename="stock.xlsx",
        file_hash="hash-" + uuid4().hex,
        rows=rows,
    )


def make_xlsx(rows: list[list], header: Optional[list] = None, leading_rows: int = 0) -> bytes:
    """Spreadsheet bytes with an optional title block above the header."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Stock Upload"
    for i in range(leading_rows):
        ws.append([f"Título {i + 1}"])
    ws.append(header if header is not None else TEMPLATE_HEADER)
    for row in rows:
        ws.append(row)
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def make_csv(rows: list[list], header: Optional[list] = None, separator: str = ",") -> bytes:
    """CSV bytes (UTF-8) with the template header."""
    lines = [separator.join(header if header is not None else TEMPLATE_HEADER)]
    for row in rows:
        lines.append(separator.join("" if value is None else str(value) for value in row))
    return ("\n".join(lines) + "\n").encode("utf-8")


class FakeCatalog:
    """In-memory stand-in for CatalogService."""

    def __init__(self, snapshot: CatalogSnapshot):
        self.snapshot = snapshot
        self.snapshot_loads = 0

    def load_snapshot(self) -> CatalogSnapshot:
        self.snapshot_loads += 1
        return self.snapshot

    def get_product(self, product_id: str) -> CatalogProduct:
        for product in self.snapshot.products:
            if product.id == product_id:
                return product
        raise ProductNotFoundError(product_id)

    def get_warehouse(self, warehouse_id: str) -> CatalogWarehouse:
        for warehouse in self.snapshot.warehouses:
            if warehouse.id == warehouse_id:
                return warehouse
        raise WarehouseNotFoundError(warehouse_id)

    def search_products(self, text: str, limit: int = 10) -> list:
        return []


class FakeStockWriter:
    """Records stock entries instead of writing them."""

    def __init__(self, failing_keys: Optional[set] = None):
        self.failing_keys = failing_keys or set()
        self.calls: list[list] = []

    def write_entries(self, entries: list, reference: str) -> StockWriteReport:
        self.calls.append(list(entries))
        report = StockWriteReport()
        for entry in entries:
            if entry.key in self.failing_keys:
                report.failures[entry.key] = "simulated failure"
            else:
                report.written += 1
        return report
