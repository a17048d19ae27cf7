"""
Inventory Domain Models.

Products with their moving-average cost and the append-only movement
ledger that feeds it.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MovementType(str, Enum):
    """Inventory movement kinds.  Only PURCHASE_RECEIPT feeds the average cost."""
    PURCHASE_RECEIPT = "PURCHASE_RECEIPT"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
    JOB_ISSUE = "JOB_ISSUE"
    JOB_RETURN = "JOB_RETURN"


class ReferenceTable(str, Enum):
    """What a movement points back to."""
    PURCHASE_ORDER = "OC"
    JOB = "OT"
    MANUAL = "MANUAL"


@dataclass(frozen=True)
class Product:
    id: UUID
    sku: str
    name: str
    unit_of_measure: str
    unit_cost: Decimal


@dataclass(frozen=True)
class InventoryMovement:
    """An immutable ledger entry.  Outbound movements carry a negative qty."""
    id: UUID
    entry_seq: int
    moved_at: datetime
    product_sku: str
    movement_type: MovementType
    qty: Decimal
    unit_cost: Decimal
    reference_table: str | None = None
    reference_id: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class RecalculationSummary:
    updated_count: int
    skipped_count: int
    unchanged_count: int
