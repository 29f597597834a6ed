"""
Execution of a corrected import session.

Admissibility is decided from the session's current row states only; the
original file is never re-read and rows are never re-classified here.
Every row ends with exactly one outcome: PROCESSED, SKIPPED or ERROR.
"""

from decimal import Decimal
from typing import Optional
import structlog

from models.inventory_import import (
    Bucket,
    ClassifiedRow,
    DuplicatePolicy,
    ErrorState,
    ExecutionMode,
    ExecutionResult,
    ImportSession,
    NotFoundProduct,
    RowOutcome,
    RowOutcomeEntry,
    SessionStatus,
    ERROR_DUPLICATE_ROW,
    ERROR_PRODUCT_NOT_FOUND,
    ERROR_WAREHOUSE_NOT_FOUND,
    ERROR_WRITE_FAILED,
)
from services.preview_service import rejected_duplicate_rows, stock_key
from services.stock_service import StockEntry, StockKey
from exceptions import ExecutionRefusedError, ImportSessionClosedError

logger = structlog.get_logger(__name__)

SKIP_REASON_PENDING_SUGGESTION = "pending suggestion"


def execute(
    session: ImportSession,
    mode: ExecutionMode,
    writer,
    policy: DuplicatePolicy = DuplicatePolicy.SUM,
) -> ExecutionResult:
    """
    Commit the admissible rows of a session.

    Args:
        session: Session to execute (marked EXECUTED on success)
        mode: ONLY_VALID commits VALID rows; ALL_PERFECT requires all rows VALID
        writer: Object with write_entries(entries, reference) -> StockWriteReport
        policy: How several VALID rows for one stock key combine

    Returns:
        ExecutionResult accounting for every row

    Raises:
        ImportSessionClosedError: Session already executed
        ExecutionRefusedError: Mode not admissible; nothing was written
    """
    if session.status == SessionStatus.EXECUTED:
        raise ImportSessionClosedError(session.session_id, session.status.value)

    valid = [row for row in session.rows if row.bucket == Bucket.VALID]
    suggested = [row for row in session.rows if row.bucket == Bucket.SUGGESTED]
    errors = [row for row in session.rows if row.bucket == Bucket.ERROR]
    rejected = rejected_duplicate_rows(valid, policy)

    if mode == ExecutionMode.ALL_PERFECT and (suggested or errors or rejected):
        logger.warning(
            "import_execution_refused",
            session_id=session.session_id,
            mode=mode.value,
            suggested=len(suggested),
            errors=len(errors),
            duplicates=len(rejected)
        )
        message = (
            f"ALL_PERFECT requires every row to be valid: "
            f"{len(suggested)} suggested and {len(errors)} with errors"
        )
        if rejected:
            message += f", {len(rejected)} rejected as duplicates"
        raise ExecutionRefusedError(
            message=message,
            valid_count=len(valid) - len(rejected),
            suggested_count=len(suggested),
            error_count=len(errors) + len(rejected),
        )

    if len(valid) == len(rejected):
        logger.warning("import_execution_refused", session_id=session.session_id, reason="no_valid_rows")
        raise ExecutionRefusedError(
            message="There are no valid rows to import",
            valid_count=0,
            suggested_count=len(suggested),
            error_count=len(errors) + len(rejected),
            code="NO_VALID_ROWS",
        )

    logger.info(
        "executing_import",
        session_id=session.session_id,
        mode=mode.value,
        policy=policy.value,
        valid=len(valid)
    )

    outcomes: dict[int, RowOutcomeEntry] = {}
    for row in suggested:
        outcomes[row.row_index] = RowOutcomeEntry(
            row_index=row.row_index,
            outcome=RowOutcome.SKIPPED,
            reason=SKIP_REASON_PENDING_SUGGESTION,
        )
    for row in errors:
        outcomes[row.row_index] = RowOutcomeEntry(
            row_index=row.row_index,
            outcome=RowOutcome.ERROR,
            reason=row.error_reason,
        )

    groups = group_by_stock_key(valid)
    entries: list[StockEntry] = []
    committed: dict[StockKey, list[ClassifiedRow]] = {}

    for key, rows in groups.items():
        if len(rows) > 1 and policy == DuplicatePolicy.REJECT:
            for row in rows:
                outcomes[row.row_index] = RowOutcomeEntry(
                    row_index=row.row_index,
                    outcome=RowOutcome.ERROR,
                    reason=ERROR_DUPLICATE_ROW,
                )
            continue
        entries.append(merge_rows(key, rows, policy))
        committed[key] = rows

    report = writer.write_entries(entries, reference=session.session_id)

    for key, rows in committed.items():
        failure = report.failures.get(key)
        for row in rows:
            outcomes[row.row_index] = RowOutcomeEntry(
                row_index=row.row_index,
                outcome=RowOutcome.ERROR if failure else RowOutcome.PROCESSED,
                reason=ERROR_WRITE_FAILED if failure else None,
            )

    row_outcomes = [outcomes[row.row_index] for row in session.rows]
    processed = sum(1 for entry in row_outcomes if entry.outcome == RowOutcome.PROCESSED)
    skipped = sum(1 for entry in row_outcomes if entry.outcome == RowOutcome.SKIPPED)
    failed = sum(1 for entry in row_outcomes if entry.outcome == RowOutcome.ERROR)

    summary = f"{processed} of {len(session.rows)} rows imported"
    if skipped:
        summary += f", {skipped} skipped"
    if failed:
        summary += f", {failed} with errors"
    if report.movement_failures:
        summary += f" ({report.movement_failures} movements not logged)"

    result = ExecutionResult(
        mode=mode,
        processed_count=processed,
        error_count=failed,
        skipped_count=skipped,
        total_rows=len(session.rows),
        summary_message=summary,
        products_not_found=products_not_found(errors),
        warehouses_not_found=warehouses_not_found(errors),
        row_outcomes=row_outcomes,
        stock_entries_written=report.written,
    )

    session.status = SessionStatus.EXECUTED
    session.result = result

    logger.info(
        "import_executed",
        session_id=session.session_id,
        processed=processed,
        skipped=skipped,
        errors=failed,
        stock_entries=report.written
    )

    return result


def group_by_stock_key(rows: list[ClassifiedRow]) -> dict[StockKey, list[ClassifiedRow]]:
    """VALID rows grouped by (warehouse_id, product_id), in file order."""
    groups: dict[StockKey, list[ClassifiedRow]] = {}
    for row in rows:
        groups.setdefault(stock_key(row), []).append(row)
    return groups


def merge_rows(key: StockKey, rows: list[ClassifiedRow], policy: DuplicatePolicy) -> StockEntry:
    """
    Collapse the rows of one stock key into a single entry.

    SUM adds quantities and keeps the highest minimum stock; LAST_WINS
    takes the last row in file order.
    """
    if policy == DuplicatePolicy.LAST_WINS or len(rows) == 1:
        last = rows[-1].row
        return StockEntry(
            warehouse_id=key[0],
            product_id=key[1],
            quantity=last.quantity,
            minimum_stock=last.minimum_stock,
        )

    minimums = [row.row.minimum_stock for row in rows if row.row.minimum_stock is not None]
    return StockEntry(
        warehouse_id=key[0],
        product_id=key[1],
        quantity=sum((row.row.quantity for row in rows), Decimal("0")),
        minimum_stock=max(minimums) if minimums else None,
    )


def products_not_found(rows: list[ClassifiedRow]) -> list[NotFoundProduct]:
    """Distinct (code, description) of rows whose product did not resolve."""
    seen: dict[tuple[Optional[str], Optional[str]], NotFoundProduct] = {}
    for row in rows:
        if _has_reason(row, ERROR_PRODUCT_NOT_FOUND):
            key = (row.row.product_code, row.row.description)
            seen.setdefault(key, NotFoundProduct(code=key[0], description=key[1]))
    return list(seen.values())


def warehouses_not_found(rows: list[ClassifiedRow]) -> list[str]:
    """Distinct labels of rows whose warehouse did not resolve."""
    labels: list[str] = []
    for row in rows:
        label = row.row.warehouse_label
        if label and _has_reason(row, ERROR_WAREHOUSE_NOT_FOUND) and label not in labels:
            labels.append(label)
    return labels


def _has_reason(row: ClassifiedRow, reason: str) -> bool:
    return isinstance(row.state, ErrorState) and reason in row.state.error_details
