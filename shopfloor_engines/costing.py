"""
Module: shopfloor_engines.costing
Responsibility:
    The moving-average unit cost formula shared by receipts and the batch
    recalculation: weigh the most recent purchase receipts (plus, on the
    receiving path, the receipt being posted) by quantity.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only samples with strictly positive quantity are weighed.
    - At most ``window`` history samples are used, taken from the front of
      the sequence (callers pass history most-recent-first).
    - Result is rounded half-up to ``decimal_places``.
    - Deterministic: the same window always yields the same cost, so
      recomputing without new movements is idempotent.

Failure modes:
    - ValueError if window < 1.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from shopfloor_engines.tracer import traced_engine
from shopfloor_kernel.db.types import COST_DECIMAL_PLACES, ZERO, round_money

DEFAULT_COST_WINDOW = 10


@dataclass(frozen=True)
class CostSample:
    """Quantity received at a unit cost."""

    qty: Decimal
    unit_cost: Decimal

    @property
    def value(self) -> Decimal:
        return self.qty * self.unit_cost


@traced_engine(
    "moving_average_cost", "1.0", fingerprint_fields=("history", "receipt", "window")
)
def weighted_average_cost(
    *,
    history: Sequence[CostSample],
    receipt: CostSample | None = None,
    window: int = DEFAULT_COST_WINDOW,
    decimal_places: int = COST_DECIMAL_PLACES,
) -> Decimal | None:
    """
    Weighted-average unit cost over recent receipts.

    Args:
        history: Prior purchase receipts, most recent first.
        receipt: The receipt being posted, if any.  Always weighed in
            addition to the window.
        window: Max number of positive history samples to weigh.
        decimal_places: Rounding precision.

    Returns:
        The rounded cost, or None when there is nothing to weigh.  When the
        weighed quantity is zero the receipt's own unit cost is returned.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    samples = [s for s in history if s.qty > ZERO][:window]
    if receipt is not None:
        samples.append(receipt)
    if not samples:
        return None

    total_qty = sum((s.qty for s in samples), ZERO)
    if total_qty == ZERO:
        return receipt.unit_cost if receipt is not None else None

    total_value = sum((s.value for s in samples), ZERO)
    return round_money(total_value / total_qty, decimal_places)
