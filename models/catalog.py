"""
Catalog schemas: products and warehouses as seen by the import engine.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema, FrozenSchema


class CatalogProduct(FrozenSchema):
    """Canonical product identity from the catalog."""

    id: str = Field(..., description="Product UUID")
    code: str = Field(..., description="Product code (catalog spelling)")
    description: Optional[str] = Field(None, description="Product description")
    brand: Optional[str] = Field(None, description="Brand name")
    unit: Optional[str] = Field(None, description="Default unit of measure")


class CatalogWarehouse(FrozenSchema):
    """Warehouse identity from the warehouse directory."""

    id: str = Field(..., description="Warehouse UUID")
    name: str = Field(..., description="Warehouse display name")
    code: Optional[str] = Field(None, description="Short warehouse code")


class CatalogSnapshot(FrozenSchema):
    """
    Catalog contents loaded once per batch.

    Classification runs against the snapshot only, so a batch sees a
    consistent catalog even if products change mid-import.
    """

    products: tuple[CatalogProduct, ...] = ()
    warehouses: tuple[CatalogWarehouse, ...] = ()


class ProductSearchResult(BaseSchema):
    """One ranked candidate returned by catalog search."""

    product_id: str = Field(..., description="Product UUID")
    code: str = Field(..., description="Product code")
    description: Optional[str] = None
    brand: Optional[str] = None
    unit: Optional[str] = None
    score: int = Field(..., ge=0, le=100, description="Relevance score (0-100)")


class ProductSearchResponse(BaseSchema):
    """Catalog search response for manual correction."""

    query: str
    data: list[ProductSearchResult]
    total: int
