"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.catalog import (
    CatalogProduct,
    CatalogWarehouse,
    CatalogSnapshot,
    ProductSearchResult,
    ProductSearchResponse,
)
from models.inventory_import import (
    Bucket,
    MatchKind,
    ExecutionMode,
    SessionStatus,
    DuplicatePolicy,
    RowOutcome,
    RawRow,
    ProductMatch,
    WarehouseMatch,
    Suggestion,
    ValidState,
    SuggestedState,
    ErrorState,
    ClassifiedRow,
    PreviewRow,
    PreviewResult,
    RowListResponse,
    AcceptSuggestion,
    ManualBind,
    CorrectionAction,
    CorrectionRequest,
    CorrectionResponse,
    ExecutionRequest,
    NotFoundProduct,
    RowOutcomeEntry,
    ExecutionResult,
    ImportSession,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    # Catalog
    "CatalogProduct",
    "CatalogWarehouse",
    "CatalogSnapshot",
    "ProductSearchResult",
    "ProductSearchResponse",
    # Inventory import
    "Bucket",
    "MatchKind",
    "ExecutionMode",
    "SessionStatus",
    "DuplicatePolicy",
    "RowOutcome",
    "RawRow",
    "ProductMatch",
    "WarehouseMatch",
    "Suggestion",
    "ValidState",
    "SuggestedState",
    "ErrorState",
    "ClassifiedRow",
    "PreviewRow",
    "PreviewResult",
    "RowListResponse",
    "AcceptSuggestion",
    "ManualBind",
    "CorrectionAction",
    "CorrectionRequest",
    "CorrectionResponse",
    "ExecutionRequest",
    "NotFoundProduct",
    "RowOutcomeEntry",
    "ExecutionResult",
    "ImportSession",
]
