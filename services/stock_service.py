"""
Stock service: writes committed import rows to persisted stock.

Tables:
    inventory_stock (warehouse_id, product_id, quantity, minimum_stock,
        updated_at), unique on (warehouse_id, product_id)
    stock_movements (warehouse_id, product_id, movement_type, quantity,
        previous_quantity, new_quantity, reason, reference)
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional
import structlog

from config import get_admin_client, get_supabase_client
from config.settings import get_settings

logger = structlog.get_logger(__name__)

MOVEMENT_TYPE_INITIAL = "INITIAL"

StockKey = tuple[str, str]


@dataclass(frozen=True)
class StockEntry:
    """Final quantity for one (warehouse, product) pair."""
    warehouse_id: str
    product_id: str
    quantity: Decimal
    minimum_stock: Optional[Decimal] = None

    @property
    def key(self) -> StockKey:
        return (self.warehouse_id, self.product_id)


@dataclass
class StockWriteReport:
    """Per-key outcome of a write call."""
    written: int = 0
    failures: dict[StockKey, str] = field(default_factory=dict)
    movement_failures: int = 0


class StockService:
    """
    Stock writes for bulk imports.

    Writes are best-effort per key: a chunk that fails is retried entry by
    entry so one bad key does not sink its neighbours.
    """

    def __init__(self, chunk_size: Optional[int] = None):
        self.db = get_admin_client() or get_supabase_client()
        self.table = "inventory_stock"
        self.movements_table = "stock_movements"
        self.chunk_size = chunk_size or get_settings().import_write_chunk_size

    def write_entries(self, entries: list[StockEntry], reference: str) -> StockWriteReport:
        """
        Overwrite stock quantities and log one movement per written key.

        Args:
            entries: One entry per distinct (warehouse, product)
            reference: Import session id, stored on each movement

        Returns:
            StockWriteReport with written count and failed keys
        """
        report = StockWriteReport()
        if not entries:
            return report

        logger.info("writing_stock_entries", count=len(entries), reference=reference)

        for chunk in _chunks(entries, self.chunk_size):
            try:
                previous = self._current_quantities(chunk)
            except Exception as e:
                logger.error("stock_read_failed", count=len(chunk), error=str(e))
                for entry in chunk:
                    report.failures[entry.key] = f"could not read current stock: {e}"
                continue

            written = self._upsert_chunk(chunk, report)
            report.written += len(written)

            if written:
                self._record_movements(written, previous, reference, report)

        logger.info(
            "stock_entries_written",
            reference=reference,
            written=report.written,
            failed=len(report.failures),
            movement_failures=report.movement_failures
        )

        return report

    # ===================
    # HELPERS
    # ===================

    def _current_quantities(self, chunk: list[StockEntry]) -> dict[StockKey, Decimal]:
        product_ids = sorted({entry.product_id for entry in chunk})
        result = (
            self.db.table(self.table)
            .select("warehouse_id, product_id, quantity")
            .in_("product_id", product_ids)
            .execute()
        )
        return {
            (str(row["warehouse_id"]), str(row["product_id"])): Decimal(str(row.get("quantity") or 0))
            for row in result.data or []
        }

    def _upsert_chunk(self, chunk: list[StockEntry], report: StockWriteReport) -> list[StockEntry]:
        """Upsert a chunk; on failure fall back to one entry at a time."""
        try:
            self._upsert([_stock_row(entry) for entry in chunk])
            return list(chunk)
        except Exception as e:
            logger.warning("stock_chunk_write_failed", count=len(chunk), error=str(e))

        written = []
        for entry in chunk:
            try:
                self._upsert([_stock_row(entry)])
                written.append(entry)
            except Exception as e:
                logger.error(
                    "stock_write_failed",
                    warehouse_id=entry.warehouse_id,
                    product_id=entry.product_id,
                    error=str(e)
                )
                report.failures[entry.key] = str(e)
        return written

    def _upsert(self, rows: list[dict]) -> None:
        (
            self.db.table(self.table)
            .upsert(rows, on_conflict="warehouse_id,product_id")
            .execute()
        )

    def _record_movements(
        self,
        entries: list[StockEntry],
        previous: dict[StockKey, Decimal],
        reference: str,
        report: StockWriteReport,
    ) -> None:
        movements = [
            {
                "warehouse_id": entry.warehouse_id,
                "product_id": entry.product_id,
                "movement_type": MOVEMENT_TYPE_INITIAL,
                "quantity": str(entry.quantity),
                "previous_quantity": str(previous.get(entry.key, Decimal("0"))),
                "new_quantity": str(entry.quantity),
                "reason": "Bulk inventory import",
                "reference": reference,
            }
            for entry in entries
        ]
        try:
            self.db.table(self.movements_table).insert(movements).execute()
        except Exception as e:
            # Stock is already written; the audit gap is reported, not rolled back
            logger.error("stock_movements_insert_failed", count=len(movements), error=str(e))
            report.movement_failures += len(movements)


def _stock_row(entry: StockEntry) -> dict:
    row = {
        "warehouse_id": entry.warehouse_id,
        "product_id": entry.product_id,
        "quantity": str(entry.quantity),
        "updated_at": datetime.utcnow().isoformat() + "Z",
    }
    if entry.minimum_stock is not None:
        row["minimum_stock"] = str(entry.minimum_stock)
    return row


def _chunks(entries: list[StockEntry], size: int) -> Iterator[list[StockEntry]]:
    for start in range(0, len(entries), max(1, size)):
        yield entries[start:start + size]


# Singleton instance
_stock_service: Optional[StockService] = None


def get_stock_service() -> StockService:
    """Get or create StockService instance."""
    global _stock_service
    if _stock_service is None:
        _stock_service = StockService()
    return _stock_service
