"""
Module: shopfloor_engines
Responsibility:
    Re-exports the pure calculation engines: requisition-line allocation,
    the moving-average cost formula and the receipt planner.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import shopfloor_kernel exceptions, types and logging.
    MUST NOT import shopfloor_services or shopfloor_modules.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.
"""

from shopfloor_engines.allocation import (
    AllocationEngine,
    AllocationPlan,
    AllocationSplit,
    CoverageCandidate,
    DesiredLine,
)
from shopfloor_engines.costing import (
    DEFAULT_COST_WINDOW,
    CostSample,
    weighted_average_cost,
)
from shopfloor_engines.receiving import (
    Fulfillment,
    OrderedLine,
    PlannedMovement,
    ProductPosition,
    ReceiptItem,
    ReceiptPlan,
    order_positions,
    plan_receipt,
)
from shopfloor_engines.tracer import traced_engine

__all__ = [
    "AllocationEngine",
    "AllocationPlan",
    "AllocationSplit",
    "CoverageCandidate",
    "DesiredLine",
    "DEFAULT_COST_WINDOW",
    "CostSample",
    "weighted_average_cost",
    "Fulfillment",
    "OrderedLine",
    "PlannedMovement",
    "ProductPosition",
    "ReceiptItem",
    "ReceiptPlan",
    "order_positions",
    "plan_receipt",
    "traced_engine",
]
