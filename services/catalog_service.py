"""
Catalog service: read access to products and warehouses.

The catalog and the warehouse directory are owned elsewhere; this service
only loads snapshots for classification, looks up single records for
manual correction, and ranks products for operator search.
"""

from typing import Optional
import structlog

from rapidfuzz import fuzz, process

from config import get_supabase_client
from models.catalog import (
    CatalogProduct,
    CatalogWarehouse,
    CatalogSnapshot,
    ProductSearchResult,
)
from exceptions import (
    ProductNotFoundError,
    WarehouseNotFoundError,
    DatabaseError,
)
from utils.text_utils import fold_label

logger = structlog.get_logger(__name__)

PAGE_SIZE = 1000
SEARCH_MIN_SCORE = 50


class CatalogService:
    """
    Catalog lookups.

    Tables: products (id, code, description, brand, unit, active),
    warehouses (id, name, code, active).
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.products_table = "products"
        self.warehouses_table = "warehouses"

    # ===================
    # SNAPSHOT
    # ===================

    def load_snapshot(self) -> CatalogSnapshot:
        """
        Load every active product and warehouse.

        Returns:
            CatalogSnapshot used for one batch classification
        """
        products = [
            self._row_to_product(row)
            for row in self._fetch_active(self.products_table, "id, code, description, brand, unit", "code")
        ]
        warehouses = [
            self._row_to_warehouse(row)
            for row in self._fetch_active(self.warehouses_table, "id, name, code", "name")
        ]

        logger.info(
            "catalog_snapshot_loaded",
            products=len(products),
            warehouses=len(warehouses)
        )

        return CatalogSnapshot(products=tuple(products), warehouses=tuple(warehouses))

    def _fetch_active(self, table: str, columns: str, order_by: str) -> list[dict]:
        """Page through an active-only table."""
        rows: list[dict] = []
        offset = 0

        try:
            while True:
                result = (
                    self.db.table(table)
                    .select(columns)
                    .eq("active", True)
                    .order(order_by)
                    .range(offset, offset + PAGE_SIZE - 1)
                    .execute()
                )
                page = result.data or []
                rows.extend(page)
                if len(page) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE

        except Exception as e:
            logger.error("catalog_fetch_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e), details={"table": table})

        return rows

    # ===================
    # SINGLE LOOKUPS
    # ===================

    def get_product(self, product_id: str) -> CatalogProduct:
        """
        Get an active product by ID.

        Raises:
            ProductNotFoundError: If the product doesn't exist or is inactive
        """
        logger.debug("getting_catalog_product", product_id=product_id)

        row = self._fetch_one(self.products_table, product_id)
        if row is None:
            raise ProductNotFoundError(product_id)
        return self._row_to_product(row)

    def get_warehouse(self, warehouse_id: str) -> CatalogWarehouse:
        """
        Get an active warehouse by ID.

        Raises:
            WarehouseNotFoundError: If the warehouse doesn't exist or is inactive
        """
        logger.debug("getting_catalog_warehouse", warehouse_id=warehouse_id)

        row = self._fetch_one(self.warehouses_table, warehouse_id)
        if row is None:
            raise WarehouseNotFoundError(warehouse_id)
        return self._row_to_warehouse(row)

    def _fetch_one(self, table: str, record_id: str) -> Optional[dict]:
        try:
            result = (
                self.db.table(table)
                .select("*")
                .eq("id", record_id)
                .eq("active", True)
                .execute()
            )
        except Exception as e:
            logger.error("catalog_lookup_failed", table=table, record_id=record_id, error=str(e))
            raise DatabaseError("select", str(e), details={"table": table})

        if not result.data:
            return None
        return result.data[0]

    # ===================
    # SEARCH
    # ===================

    def search_products(self, text: str, limit: int = 10) -> list[ProductSearchResult]:
        """
        Rank active products against free text.

        Scores code and description together with WRatio so partial codes
        and description words both find the product.

        Args:
            text: Operator's search text
            limit: Max results

        Returns:
            Results sorted by score descending, then code
        """
        folded = fold_label(text)
        if not folded:
            return []

        products = self.load_snapshot().products
        choices = {
            index: fold_label(f"{product.code} {product.description or ''}")
            for index, product in enumerate(products)
        }

        matches = process.extract(
            folded,
            choices,
            scorer=fuzz.WRatio,
            score_cutoff=SEARCH_MIN_SCORE,
            limit=None,
        )

        ranked = sorted(
            ((int(round(score)), products[index]) for _, score, index in matches),
            key=lambda pair: (-pair[0], pair[1].code),
        )[:limit]

        logger.info("catalog_search", query=text, results=len(ranked))

        return [
            ProductSearchResult(
                product_id=product.id,
                code=product.code,
                description=product.description,
                brand=product.brand,
                unit=product.unit,
                score=score,
            )
            for score, product in ranked
        ]

    # ===================
    # HELPERS
    # ===================

    def _row_to_product(self, row: dict) -> CatalogProduct:
        return CatalogProduct(
            id=str(row["id"]),
            code=str(row["code"]),
            description=row.get("description"),
            brand=row.get("brand"),
            unit=row.get("unit"),
        )

    def _row_to_warehouse(self, row: dict) -> CatalogWarehouse:
        return CatalogWarehouse(
            id=str(row["id"]),
            name=str(row["name"]),
            code=row.get("code"),
        )


# Singleton instance
_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
