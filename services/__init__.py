"""
Business logic services.

Each service handles one domain area.
"""

from services.catalog_service import CatalogService, get_catalog_service
from services.stock_service import StockService, get_stock_service
from services.stock_template_service import StockTemplateService, get_stock_template_service
from services.inventory_import_service import (
    InventoryImportService,
    get_inventory_import_service,
)

__all__ = [
    "CatalogService",
    "get_catalog_service",
    "StockService",
    "get_stock_service",
    "StockTemplateService",
    "get_stock_template_service",
    "InventoryImportService",
    "get_inventory_import_service",
]
