"""
Preview aggregation over a session's classified rows.

Pure: no I/O, no logging. Called after classification and after every
correction so counts always reflect the current row states.
"""

from collections import Counter
from typing import Optional

from models.inventory_import import (
    Bucket,
    ClassifiedRow,
    DuplicatePolicy,
    ImportSession,
    PreviewResult,
    PreviewRow,
)


def build_preview(
    session: ImportSession,
    sample_size: int = 10,
    ttl_minutes: int = 30,
    duplicate_policy: Optional[DuplicatePolicy] = None,
) -> PreviewResult:
    """
    Summarize a session.

    Args:
        session: Session with its current rows
        sample_size: Rows kept per bucket sample (the last N of each bucket)
        ttl_minutes: Reported session lifetime
        duplicate_policy: When given, duplicate stock keys are reported
            with the policy that will apply to them

    Returns:
        PreviewResult with counts, execute flags and samples
    """
    by_bucket: dict[Bucket, list[ClassifiedRow]] = {bucket: [] for bucket in Bucket}
    for classified in session.rows:
        by_bucket[classified.bucket].append(classified)

    total = len(session.rows)
    valid_count = len(by_bucket[Bucket.VALID])
    rejected: list[ClassifiedRow] = []

    warnings = list(session.upload_warnings)
    if duplicate_policy is not None:
        warnings.extend(duplicate_key_warnings(session.rows, duplicate_policy))
        rejected = rejected_duplicate_rows(session.rows, duplicate_policy)

    return PreviewResult(
        session_id=session.session_id,
        status=session.status,
        filename=session.filename,
        total_rows=total,
        valid_count=valid_count,
        suggested_count=len(by_bucket[Bucket.SUGGESTED]),
        error_count=len(by_bucket[Bucket.ERROR]),
        can_execute_partial=valid_count > len(rejected),
        can_execute_complete=total > 0 and valid_count == total and not rejected,
        valid_sample=_sample(by_bucket[Bucket.VALID], sample_size),
        suggested_sample=_sample(by_bucket[Bucket.SUGGESTED], sample_size),
        error_sample=_sample(by_bucket[Bucket.ERROR], sample_size),
        warnings=warnings,
        expires_in_minutes=ttl_minutes,
    )


def stock_key(row: ClassifiedRow) -> tuple[str, str]:
    """(warehouse_id, product_id) of a VALID row."""
    return (row.warehouse_match.warehouse_id, row.product_match.product_id)


def duplicate_key_warnings(rows: list[ClassifiedRow], policy: DuplicatePolicy) -> list[str]:
    """One notice per (warehouse, product) pair bound by more than one VALID row."""
    valid = [row for row in rows if row.bucket == Bucket.VALID]
    keys = Counter(stock_key(row) for row in valid)
    labels = {stock_key(row): (row.warehouse_match.name, row.product_match.code) for row in valid}

    repeated = sorted((labels[key], count) for key, count in keys.items() if count > 1)
    return [
        f"{count} rows for product {code} in warehouse {warehouse} ({policy.value})"
        for (warehouse, code), count in repeated
    ]


def rejected_duplicate_rows(rows: list[ClassifiedRow], policy: DuplicatePolicy) -> list[ClassifiedRow]:
    """VALID rows that REJECT turns into errors: every row of a repeated stock key."""
    if policy != DuplicatePolicy.REJECT:
        return []

    valid = [row for row in rows if row.bucket == Bucket.VALID]
    keys = Counter(stock_key(row) for row in valid)
    return [row for row in valid if keys[stock_key(row)] > 1]


def _sample(rows: list[ClassifiedRow], size: int) -> list[PreviewRow]:
    if size <= 0:
        return []
    return [PreviewRow.from_classified(row) for row in rows[-size:]]
