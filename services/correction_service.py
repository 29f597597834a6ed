"""
Operator corrections on a classified session.

Each action promotes exactly one row to VALID or is rejected without
touching the session. Repeating an action that already took effect is a
no-op, so a retried request cannot double-apply.
"""

from typing import Union
import structlog

from models.inventory_import import (
    AcceptSuggestion,
    ManualBind,
    ClassifiedRow,
    ImportSession,
    SessionStatus,
    MatchKind,
    ProductMatch,
    WarehouseMatch,
    Suggestion,
    ValidState,
    SuggestedState,
    ErrorState,
    ERROR_INVALID_QUANTITY,
    ERROR_INVALID_UNIT,
)
from exceptions import (
    ImportSessionClosedError,
    RowNotFoundError,
    CorrectionRejectedError,
)

logger = structlog.get_logger(__name__)

# Reasons a product binding cannot clear
UNBINDABLE_REASONS = (ERROR_INVALID_QUANTITY, ERROR_INVALID_UNIT)


def apply_correction(
    session: ImportSession,
    action: Union[AcceptSuggestion, ManualBind],
    catalog,
) -> tuple[ClassifiedRow, bool]:
    """
    Apply one correction to the session in place.

    Args:
        session: Session to correct (mutated on success)
        action: AcceptSuggestion or ManualBind
        catalog: Object with get_product(id) and get_warehouse(id)

    Returns:
        (row after the action, changed) where changed is False for a repeat

    Raises:
        ImportSessionClosedError: Session already executed
        RowNotFoundError: No row with action.row_index
        CorrectionRejectedError: Row is not in the state the action needs
        ProductNotFoundError / WarehouseNotFoundError: Unknown bound ids
    """
    if session.status == SessionStatus.EXECUTED:
        raise ImportSessionClosedError(session.session_id, session.status.value)

    position = session.find_row(action.row_index)
    if position is None:
        raise RowNotFoundError(action.row_index)

    current = session.rows[position]

    if isinstance(action, AcceptSuggestion):
        updated = _accept_suggestion(current, action)
    else:
        updated = _manual_bind(current, action, catalog)

    if updated is None:
        logger.info(
            "correction_repeated",
            session_id=session.session_id,
            row_index=action.row_index,
            action=action.action
        )
        return current, False

    session.rows[position] = updated
    session.corrections.append(action)
    session.status = SessionStatus.CORRECTING

    logger.info(
        "correction_applied",
        session_id=session.session_id,
        row_index=action.row_index,
        action=action.action,
        previous_bucket=current.bucket.value,
        product_id=updated.matched_product_id
    )

    return updated, True


def _accept_suggestion(current: ClassifiedRow, action: AcceptSuggestion):
    """New row, or None when the suggestion was already accepted."""
    state = current.state

    if isinstance(state, ValidState):
        if MatchKind.ACCEPTED_SUGGESTION in (state.product.match_kind, state.warehouse.match_kind):
            return None
        _reject(current, action, "row is already valid")

    if not isinstance(state, SuggestedState):
        _reject(current, action, "row has no suggestion to accept")

    product = state.product or _product_from(state.product_suggestion, MatchKind.ACCEPTED_SUGGESTION)
    warehouse = state.warehouse or _warehouse_from(state.warehouse_suggestion, MatchKind.ACCEPTED_SUGGESTION)

    return ClassifiedRow(
        row=current.row,
        state=ValidState(product=product, warehouse=warehouse),
    )


def _manual_bind(current: ClassifiedRow, action: ManualBind, catalog):
    """New row, or None when the same binding is already in place."""
    state = current.state

    if isinstance(state, ValidState):
        if (
            state.product.match_kind == MatchKind.MANUAL_CORRECTION
            and state.product.product_id == action.resolved_product_id
            and action.resolved_warehouse_id in (None, state.warehouse.warehouse_id)
        ):
            return None
        _reject(current, action, "row is already valid")

    if not isinstance(state, ErrorState):
        _reject(current, action, "only rows in error can be bound manually")

    blockers = [reason for reason in state.error_details if reason in UNBINDABLE_REASONS]
    if blockers:
        _reject(current, action, f"{blockers[0]} cannot be fixed by binding a product")

    product = catalog.get_product(action.resolved_product_id)
    product_match = ProductMatch(
        product_id=product.id,
        code=product.code,
        match_kind=MatchKind.MANUAL_CORRECTION,
    )

    if action.resolved_warehouse_id is not None:
        warehouse = catalog.get_warehouse(action.resolved_warehouse_id)
        warehouse_match = WarehouseMatch(
            warehouse_id=warehouse.id,
            name=warehouse.name,
            match_kind=MatchKind.MANUAL_CORRECTION,
        )
    elif state.warehouse is not None:
        warehouse_match = state.warehouse
    else:
        _reject(current, action, "warehouse is not resolved; provide resolved_warehouse_id")

    return ClassifiedRow(
        row=current.row,
        state=ValidState(product=product_match, warehouse=warehouse_match),
    )


def _product_from(suggestion: Suggestion, kind: MatchKind) -> ProductMatch:
    return ProductMatch(
        product_id=suggestion.candidate_id,
        code=suggestion.candidate_label,
        match_kind=kind,
    )


def _warehouse_from(suggestion: Suggestion, kind: MatchKind) -> WarehouseMatch:
    return WarehouseMatch(
        warehouse_id=suggestion.candidate_id,
        name=suggestion.candidate_label,
        match_kind=kind,
    )


def _reject(current: ClassifiedRow, action, reason: str) -> None:
    logger.warning(
        "correction_rejected",
        row_index=current.row_index,
        action=action.action,
        bucket=current.bucket.value,
        reason=reason
    )
    raise CorrectionRejectedError(
        row_index=current.row_index,
        action=action.action,
        reason=reason,
        bucket=current.bucket.value,
    )
