"""
Row classification: resolve product codes and warehouse labels against a
catalog snapshot and assign each row its bucket.

Resolution ladder per value:
    1. Exact: byte-for-byte equal to a catalog key
    2. Normalized: equal after normalize_code (case, accents, separators)
    3. Fuzzy: best Levenshtein similarity at or above the threshold,
       kept as a suggestion for the operator to confirm

All functions here are pure over the snapshot they are given, so the
same rows and snapshot always classify the same way.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional
import math
import structlog

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from config.settings import Settings, get_settings
from models.catalog import CatalogProduct, CatalogWarehouse, CatalogSnapshot
from models.inventory_import import (
    RawRow,
    ClassifiedRow,
    MatchKind,
    ProductMatch,
    WarehouseMatch,
    Suggestion,
    ValidState,
    SuggestedState,
    ErrorState,
    ERROR_INVALID_QUANTITY,
    ERROR_PRODUCT_NOT_FOUND,
    ERROR_WAREHOUSE_NOT_FOUND,
    ERROR_INVALID_UNIT,
)
from utils.text_utils import fold_label, normalize_code

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A catalog record reachable through one or more keys."""
    id: str
    label: str
    keys: tuple[str, ...]


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one value: a match, a suggestion, or nothing."""
    candidate: Optional[Candidate] = None
    match_kind: Optional[MatchKind] = None
    score: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.candidate is not None and self.match_kind is not None

    @property
    def suggested(self) -> bool:
        return self.candidate is not None and self.match_kind is None


UNRESOLVED = Resolution()


@dataclass(frozen=True)
class ClassificationRules:
    """Thresholds a batch is classified with."""
    similarity_threshold: int = 70
    min_quantity: Decimal = Decimal("0.0001")
    allowed_units: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ClassificationRules":
        settings = settings or get_settings()
        return cls(
            similarity_threshold=settings.import_similarity_threshold,
            min_quantity=settings.import_min_quantity,
            allowed_units=frozenset(fold_label(unit) for unit in settings.allowed_units),
        )


def similarity(a: Optional[str], b: Optional[str]) -> int:
    """
    Similarity score 0-100 between two labels.

    round(100 * (1 - levenshtein / max_len)) over folded text, rounding
    halves up. Empty input scores 0.

    Examples:
        similarity("ABC-01", "abc-01") -> 100
        similarity("INC-256EGG", "INC-256EG") -> 90
    """
    left, right = fold_label(a), fold_label(b)
    if not left or not right:
        return 0
    return _to_score(Levenshtein.normalized_similarity(left, right))


def _to_score(ratio: float) -> int:
    return int(math.floor(ratio * 100 + 0.5))


class CatalogIndex:
    """
    Lookup structure over one kind of catalog record.

    When several records share a key, the one with the lexically smallest
    label wins, so lookups never depend on catalog order.
    """

    def __init__(self, candidates: Iterable[Candidate]):
        self.candidates = tuple(sorted(candidates, key=lambda c: (c.label, c.id)))
        self._exact: dict[str, Candidate] = {}
        self._normalized: dict[str, Candidate] = {}
        self._fuzzy_keys: list[str] = []
        self._fuzzy_owners: list[Candidate] = []

        for candidate in self.candidates:
            for key in candidate.keys:
                if not key:
                    continue
                self._exact.setdefault(key, candidate)
                normalized = normalize_code(key)
                if normalized:
                    self._normalized.setdefault(normalized, candidate)
                folded = fold_label(key)
                if folded:
                    self._fuzzy_keys.append(folded)
                    self._fuzzy_owners.append(candidate)

    def __len__(self) -> int:
        return len(self.candidates)

    def resolve(self, value: Optional[str], threshold: int) -> Resolution:
        """Run the resolution ladder for one raw value."""
        if value is None or not value.strip():
            return UNRESOLVED

        exact = self._exact.get(value)
        if exact is not None:
            return Resolution(candidate=exact, match_kind=MatchKind.EXACT)

        normalized = self._normalized.get(normalize_code(value))
        if normalized is not None:
            return Resolution(candidate=normalized, match_kind=MatchKind.NORMALIZED)

        best = self.best_suggestion(value, threshold)
        if best is None:
            return UNRESOLVED
        candidate, score = best
        return Resolution(candidate=candidate, score=score)

    def best_suggestion(self, value: str, threshold: int) -> Optional[tuple[Candidate, int]]:
        """
        Highest-scoring candidate at or above threshold.

        Ties go to the lexically smallest label.
        """
        folded = fold_label(value)
        if not folded or not self._fuzzy_keys:
            return None

        # Cutoff half a point low so rounding up to the threshold still counts
        cutoff = max(threshold - 0.5, 0) / 100
        hits = process.extract(
            folded,
            self._fuzzy_keys,
            scorer=Levenshtein.normalized_similarity,
            score_cutoff=cutoff,
            limit=None,
        )

        best: Optional[tuple[Candidate, int]] = None
        for _, ratio, position in hits:
            score = _to_score(ratio)
            if score < threshold:
                continue
            candidate = self._fuzzy_owners[position]
            if best is None or (-score, candidate.label, candidate.id) < (-best[1], best[0].label, best[0].id):
                best = (candidate, score)
        return best


def build_product_index(products: Iterable[CatalogProduct]) -> CatalogIndex:
    """Products are matched by code only."""
    return CatalogIndex(
        Candidate(id=product.id, label=product.code, keys=(product.code,))
        for product in products
    )


def build_warehouse_index(warehouses: Iterable[CatalogWarehouse]) -> CatalogIndex:
    """Warehouses are matched by name or by their short code."""
    return CatalogIndex(
        Candidate(
            id=warehouse.id,
            label=warehouse.name,
            keys=tuple(key for key in (warehouse.name, warehouse.code) if key),
        )
        for warehouse in warehouses
    )


def classify_row(
    row: RawRow,
    product: Resolution,
    warehouse: Resolution,
    rules: ClassificationRules,
) -> ClassifiedRow:
    """
    Combine the resolutions of one row into its state.

    Error precedence: invalid quantity, product not found, warehouse not
    found, invalid unit. A row with no error is SUGGESTED when either
    dimension is only suggested, VALID otherwise.
    """
    errors: list[str] = []

    if row.quantity is None or row.quantity < rules.min_quantity:
        errors.append(ERROR_INVALID_QUANTITY)
    if not product.matched and not product.suggested:
        errors.append(ERROR_PRODUCT_NOT_FOUND)
    if not warehouse.matched and not warehouse.suggested:
        errors.append(ERROR_WAREHOUSE_NOT_FOUND)

    unit = fold_label(row.unit_label)
    if unit and rules.allowed_units and unit not in rules.allowed_units:
        errors.append(ERROR_INVALID_UNIT)

    product_match = (
        ProductMatch(
            product_id=product.candidate.id,
            code=product.candidate.label,
            match_kind=product.match_kind,
        )
        if product.matched else None
    )
    product_suggestion = (
        Suggestion(
            candidate_id=product.candidate.id,
            candidate_label=product.candidate.label,
            similarity_score=product.score,
        )
        if product.suggested else None
    )
    warehouse_match = (
        WarehouseMatch(
            warehouse_id=warehouse.candidate.id,
            name=warehouse.candidate.label,
            match_kind=warehouse.match_kind,
        )
        if warehouse.matched else None
    )
    warehouse_suggestion = (
        Suggestion(
            candidate_id=warehouse.candidate.id,
            candidate_label=warehouse.candidate.label,
            similarity_score=warehouse.score,
        )
        if warehouse.suggested else None
    )

    if errors:
        state = ErrorState(
            error_reason=errors[0],
            error_details=errors,
            product=product_match,
            product_suggestion=product_suggestion,
            warehouse=warehouse_match,
            warehouse_suggestion=warehouse_suggestion,
        )
    elif product_suggestion or warehouse_suggestion:
        state = SuggestedState(
            product=product_match,
            product_suggestion=product_suggestion,
            warehouse=warehouse_match,
            warehouse_suggestion=warehouse_suggestion,
        )
    else:
        state = ValidState(product=product_match, warehouse=warehouse_match)

    return ClassifiedRow(row=row, state=state)


def classify_rows(
    rows: list[RawRow],
    snapshot: CatalogSnapshot,
    rules: Optional[ClassificationRules] = None,
    max_workers: Optional[int] = None,
) -> list[ClassifiedRow]:
    """
    Classify a batch against one catalog snapshot.

    Each distinct product code and warehouse label is resolved once; the
    fuzzy scans run on a thread pool. Output keeps input order.

    Args:
        rows: Extracted rows in file order
        snapshot: Catalog contents for this batch
        rules: Thresholds (defaults to application settings)
        max_workers: Resolver pool size (defaults to application settings)

    Returns:
        One ClassifiedRow per input row
    """
    rules = rules or ClassificationRules.from_settings()
    if max_workers is None:
        max_workers = get_settings().import_resolver_max_workers

    product_index = build_product_index(snapshot.products)
    warehouse_index = build_warehouse_index(snapshot.warehouses)

    codes = sorted({row.product_code for row in rows if row.product_code is not None})
    labels = sorted({row.warehouse_label for row in rows if row.warehouse_label is not None})

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        product_resolutions = dict(zip(
            codes,
            pool.map(lambda code: product_index.resolve(code, rules.similarity_threshold), codes)
        ))
        warehouse_resolutions = dict(zip(
            labels,
            pool.map(lambda label: warehouse_index.resolve(label, rules.similarity_threshold), labels)
        ))

    classified = [
        classify_row(
            row,
            product_resolutions.get(row.product_code, UNRESOLVED),
            warehouse_resolutions.get(row.warehouse_label, UNRESOLVED),
            rules,
        )
        for row in rows
    ]

    logger.info(
        "rows_classified",
        total=len(classified),
        distinct_codes=len(codes),
        distinct_warehouses=len(labels),
        catalog_products=len(product_index),
        catalog_warehouses=len(warehouse_index),
    )

    return classified
