"""
Inventory import schemas: rows, row states, previews, corrections and results.

A classified row carries exactly one state variant (ValidState,
SuggestedState or ErrorState) discriminated by ``bucket``. Consumers
dispatch on the variant type so every bucket is handled explicitly.
"""

from pydantic import Field, RootModel, model_validator
from typing import Annotated, Literal, Optional, Union
from datetime import datetime
from decimal import Decimal
from enum import Enum

from models.base import BaseSchema, FrozenSchema


class Bucket(str, Enum):
    """Classification outcome of a row."""
    VALID = "VALID"
    SUGGESTED = "SUGGESTED"
    ERROR = "ERROR"


class MatchKind(str, Enum):
    """How a product or warehouse was bound to a row."""
    EXACT = "EXACT"
    NORMALIZED = "NORMALIZED"
    ACCEPTED_SUGGESTION = "ACCEPTED_SUGGESTION"
    MANUAL_CORRECTION = "MANUAL_CORRECTION"


class ExecutionMode(str, Enum):
    """Admissibility rule for committing rows."""
    ONLY_VALID = "ONLY_VALID"
    ALL_PERFECT = "ALL_PERFECT"


class SessionStatus(str, Enum):
    """Lifecycle of one import session."""
    CLASSIFIED = "CLASSIFIED"
    CORRECTING = "CORRECTING"
    EXECUTED = "EXECUTED"


class DuplicatePolicy(str, Enum):
    """What to do with several VALID rows for the same (warehouse, product)."""
    SUM = "SUM"
    LAST_WINS = "LAST_WINS"
    REJECT = "REJECT"


class RowOutcome(str, Enum):
    """Per-row accounting in an execution result."""
    PROCESSED = "PROCESSED"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


ERROR_INVALID_QUANTITY = "invalid quantity"
ERROR_PRODUCT_NOT_FOUND = "product not found"
ERROR_WAREHOUSE_NOT_FOUND = "warehouse not found"
ERROR_INVALID_UNIT = "invalid unit"
ERROR_DUPLICATE_ROW = "duplicate row"
ERROR_WRITE_FAILED = "write failed"


# ===================
# RAW ROWS
# ===================

class RawRow(FrozenSchema):
    """One logical spreadsheet row, exactly as extracted."""

    row_index: int = Field(..., ge=1, description="1-based spreadsheet row number")
    warehouse_label: Optional[str] = None
    product_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[Decimal] = Field(
        None,
        description="Parsed quantity; None when missing or not numeric"
    )
    unit_label: Optional[str] = None
    minimum_stock: Optional[Decimal] = None


# ===================
# MATCHES & STATES
# ===================

class ProductMatch(FrozenSchema):
    """Product bound to a row."""
    product_id: str
    code: str
    match_kind: MatchKind


class WarehouseMatch(FrozenSchema):
    """Warehouse bound to a row."""
    warehouse_id: str
    name: str
    match_kind: MatchKind


class Suggestion(FrozenSchema):
    """Fuzzy candidate awaiting operator confirmation."""
    candidate_id: str
    candidate_label: str
    similarity_score: int = Field(..., ge=0, le=100)


class ValidState(FrozenSchema):
    """Product and warehouse resolved, quantity usable."""
    bucket: Literal["VALID"] = "VALID"
    product: ProductMatch
    warehouse: WarehouseMatch


class SuggestedState(FrozenSchema):
    """
    No blocking error, but at least one dimension is only suggested.

    For each of product and warehouse exactly one of the match or the
    suggestion is set.
    """
    bucket: Literal["SUGGESTED"] = "SUGGESTED"
    product: Optional[ProductMatch] = None
    product_suggestion: Optional[Suggestion] = None
    warehouse: Optional[WarehouseMatch] = None
    warehouse_suggestion: Optional[Suggestion] = None

    @model_validator(mode="after")
    def check_dimensions(self) -> "SuggestedState":
        if (self.product is None) == (self.product_suggestion is None):
            raise ValueError("product needs exactly one of match or suggestion")
        if (self.warehouse is None) == (self.warehouse_suggestion is None):
            raise ValueError("warehouse needs exactly one of match or suggestion")
        if self.product_suggestion is None and self.warehouse_suggestion is None:
            raise ValueError("suggested state needs at least one suggestion")
        return self


class ErrorState(FrozenSchema):
    """
    Row is blocked.

    ``error_reason`` is the primary reason; ``error_details`` lists all of
    them. Partial matches and suggestions are kept for display and for
    manual binding.
    """
    bucket: Literal["ERROR"] = "ERROR"
    error_reason: str
    error_details: list[str] = Field(default_factory=list)
    product: Optional[ProductMatch] = None
    product_suggestion: Optional[Suggestion] = None
    warehouse: Optional[WarehouseMatch] = None
    warehouse_suggestion: Optional[Suggestion] = None


RowState = Annotated[
    Union[ValidState, SuggestedState, ErrorState],
    Field(discriminator="bucket"),
]


class ClassifiedRow(FrozenSchema):
    """A raw row plus its current classification."""

    row: RawRow
    state: RowState

    @property
    def row_index(self) -> int:
        return self.row.row_index

    @property
    def bucket(self) -> Bucket:
        return Bucket(self.state.bucket)

    @property
    def product_match(self) -> Optional[ProductMatch]:
        return self.state.product

    @property
    def warehouse_match(self) -> Optional[WarehouseMatch]:
        return self.state.warehouse

    @property
    def matched_product_id(self) -> Optional[str]:
        """Bound product id; never set on ERROR rows."""
        match = self.bound_product()
        return match.product_id if match else None

    @property
    def match_kind(self) -> Optional[MatchKind]:
        match = self.bound_product()
        return match.match_kind if match else None

    def bound_product(self) -> Optional[ProductMatch]:
        if isinstance(self.state, ErrorState):
            return None
        return self.state.product

    @property
    def product_suggestion(self) -> Optional[Suggestion]:
        if isinstance(self.state, ValidState):
            return None
        return self.state.product_suggestion

    @property
    def warehouse_suggestion(self) -> Optional[Suggestion]:
        if isinstance(self.state, ValidState):
            return None
        return self.state.warehouse_suggestion

    @property
    def candidate_product_id(self) -> Optional[str]:
        suggestion = self.product_suggestion
        return suggestion.candidate_id if suggestion else None

    @property
    def similarity_score(self) -> Optional[int]:
        suggestion = self.product_suggestion
        return suggestion.similarity_score if suggestion else None

    @property
    def error_reason(self) -> Optional[str]:
        if isinstance(self.state, ErrorState):
            return self.state.error_reason
        return None


# ===================
# PREVIEW
# ===================

class PreviewRow(FrozenSchema):
    """Flat per-row view with everything an operator UI renders."""

    row_index: int
    warehouse: Optional[str] = None
    product_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    bucket: Bucket
    match_kind: Optional[MatchKind] = None
    matched_product_id: Optional[str] = None
    matched_product_code: Optional[str] = None
    warehouse_id: Optional[str] = None
    candidate_product_id: Optional[str] = None
    candidate_product_code: Optional[str] = None
    similarity_score: Optional[int] = None
    warehouse_candidate_id: Optional[str] = None
    warehouse_candidate_name: Optional[str] = None
    warehouse_similarity_score: Optional[int] = None
    error_reason: Optional[str] = None
    error_details: list[str] = Field(default_factory=list)

    @classmethod
    def from_classified(cls, classified: ClassifiedRow) -> "PreviewRow":
        raw = classified.row
        state = classified.state
        product = classified.bound_product()
        warehouse = classified.warehouse_match
        suggestion = classified.product_suggestion
        warehouse_suggestion = classified.warehouse_suggestion

        return cls(
            row_index=raw.row_index,
            warehouse=raw.warehouse_label,
            product_code=raw.product_code,
            description=raw.description,
            quantity=float(raw.quantity) if raw.quantity is not None else None,
            unit=raw.unit_label,
            bucket=classified.bucket,
            match_kind=product.match_kind if product else None,
            matched_product_id=product.product_id if product else None,
            matched_product_code=product.code if product else None,
            warehouse_id=warehouse.warehouse_id if warehouse else None,
            candidate_product_id=suggestion.candidate_id if suggestion else None,
            candidate_product_code=suggestion.candidate_label if suggestion else None,
            similarity_score=suggestion.similarity_score if suggestion else None,
            warehouse_candidate_id=warehouse_suggestion.candidate_id if warehouse_suggestion else None,
            warehouse_candidate_name=warehouse_suggestion.candidate_label if warehouse_suggestion else None,
            warehouse_similarity_score=warehouse_suggestion.similarity_score if warehouse_suggestion else None,
            error_reason=state.error_reason if isinstance(state, ErrorState) else None,
            error_details=list(state.error_details) if isinstance(state, ErrorState) else [],
        )


class PreviewResult(BaseSchema):
    """Aggregate view over all rows of one session."""

    session_id: str
    status: SessionStatus
    filename: Optional[str] = None
    total_rows: int = Field(..., ge=0)
    valid_count: int = Field(..., ge=0)
    suggested_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    can_execute_partial: bool
    can_execute_complete: bool
    valid_sample: list[PreviewRow] = Field(default_factory=list)
    suggested_sample: list[PreviewRow] = Field(default_factory=list)
    error_sample: list[PreviewRow] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    expires_in_minutes: int = 30


class RowListResponse(BaseSchema):
    """Unsampled rows of a session, optionally filtered by bucket."""

    session_id: str
    bucket: Optional[Bucket] = None
    data: list[PreviewRow]
    total: int


# ===================
# CORRECTIONS
# ===================

class AcceptSuggestion(BaseSchema):
    """Promote a SUGGESTED row to VALID using its candidates."""
    action: Literal["accept_suggestion"] = "accept_suggestion"
    row_index: int = Field(..., ge=1)


class ManualBind(BaseSchema):
    """Promote an ERROR row to VALID using an operator-chosen product."""
    action: Literal["manual_bind"] = "manual_bind"
    row_index: int = Field(..., ge=1)
    resolved_product_id: str = Field(..., min_length=1)
    resolved_warehouse_id: Optional[str] = Field(
        None,
        min_length=1,
        description="Needed when the row's warehouse is not resolved"
    )


CorrectionAction = Annotated[
    Union[AcceptSuggestion, ManualBind],
    Field(discriminator="action"),
]


class CorrectionRequest(RootModel[CorrectionAction]):
    """Request body carrying one correction action."""
    root: CorrectionAction


class CorrectionResponse(BaseSchema):
    """Updated row plus refreshed preview after a correction."""
    row: PreviewRow
    preview: PreviewResult
    changed: bool = Field(..., description="False when the action was already applied")


# ===================
# EXECUTION
# ===================

class ExecutionRequest(BaseSchema):
    """Body of an execution call."""
    mode: ExecutionMode = ExecutionMode.ONLY_VALID


class NotFoundProduct(FrozenSchema):
    """Unresolved product reported back to the operator."""
    code: Optional[str] = None
    description: Optional[str] = None


class RowOutcomeEntry(FrozenSchema):
    """Final accounting for one row."""
    row_index: int
    outcome: RowOutcome
    reason: Optional[str] = None


class ExecutionResult(FrozenSchema):
    """
    Report of one execution.

    processed_count + error_count + skipped_count always equals total_rows.
    """

    mode: ExecutionMode
    processed_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    skipped_count: int = Field(..., ge=0)
    total_rows: int = Field(..., ge=0)
    summary_message: str
    products_not_found: list[NotFoundProduct] = Field(default_factory=list)
    warehouses_not_found: list[str] = Field(default_factory=list)
    row_outcomes: list[RowOutcomeEntry] = Field(default_factory=list)
    stock_entries_written: int = Field(default=0, ge=0)
    executed_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def check_row_accounting(self) -> "ExecutionResult":
        accounted = self.processed_count + self.error_count + self.skipped_count
        if accounted != self.total_rows:
            raise ValueError(
                f"rows not accounted for: {accounted} of {self.total_rows}"
            )
        return self


# ===================
# SESSION
# ===================

class ImportSession(BaseSchema):
    """
    Server-side correction session for one batch.

    Stored as JSON between requests; execution always reads the rows from
    here so accepted corrections are what gets committed.
    """

    session_id: str
    filename: Optional[str] = None
    file_hash: str
    status: SessionStatus = SessionStatus.CLASSIFIED
    rows: list[ClassifiedRow]
    corrections: list[CorrectionAction] = Field(default_factory=list)
    upload_warnings: list[str] = Field(
        default_factory=list,
        description="Notices raised when the batch was received"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    result: Optional[ExecutionResult] = None

    def find_row(self, row_index: int) -> Optional[int]:
        """Position of the row with this index, or None."""
        for position, classified in enumerate(self.rows):
            if classified.row_index == row_index:
                return position
        return None
