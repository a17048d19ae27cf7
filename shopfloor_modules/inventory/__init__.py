"""
Inventory Module (``shopfloor_modules.inventory``).

Products, the append-only movement ledger and the moving-average unit
cost it feeds.  Receipts are posted by ``service.ReceivingProcessor``;
``recalculator.CostRecalculator`` rebuilds costs in batch.
"""

from shopfloor_modules.inventory.models import (
    InventoryMovement,
    MovementType,
    Product,
    RecalculationSummary,
    ReferenceTable,
)

__all__ = [
    "InventoryMovement",
    "MovementType",
    "Product",
    "RecalculationSummary",
    "ReferenceTable",
]
