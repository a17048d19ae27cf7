"""
Module: shopfloor_engines.receiving
Responsibility:
    Plan a goods receipt against a purchase order: diff ordered against
    already-received quantities per product, validate an explicit item
    list (or expand a total receipt), and decide the order's fulfillment
    state after posting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ReceivingProcessor loads
    the order and the movement sums, calls ``plan_receipt`` and persists the
    result.

Invariants enforced:
    - Received never exceeds ordered: cumulative item quantities per
      product are checked against pending before anything is planned.
    - Validation is total: every entry is checked before a plan is
      returned, so a rejected receipt writes nothing.
    - Unit cost per product is that of its last order line (highest
      line_number) when several lines carry the same product.
    - Fulfillment: pending after == 0 -> RECEIVED; pending after == full
      ordered total -> UNCHANGED; otherwise PARTIAL.

Failure modes:
    - UnknownOrderProductError, NonPositiveQuantityError, OverReceiptError.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from shopfloor_engines.tracer import traced_engine
from shopfloor_kernel.db.types import ZERO
from shopfloor_kernel.exceptions import (
    NonPositiveQuantityError,
    OverReceiptError,
    UnknownOrderProductError,
)


class Fulfillment(str, Enum):
    """Order state implied by a receipt."""

    RECEIVED = "RECEIVED"
    PARTIAL = "PARTIAL"
    UNCHANGED = "UNCHANGED"


@dataclass(frozen=True)
class OrderedLine:
    product_sku: str
    line_number: int
    qty: Decimal
    unit_cost: Decimal


@dataclass(frozen=True)
class ReceiptItem:
    """Explicit receipt entry supplied by the caller."""

    product_sku: str
    qty: Decimal


@dataclass(frozen=True)
class PlannedMovement:
    product_sku: str
    qty: Decimal
    unit_cost: Decimal


@dataclass(frozen=True)
class ProductPosition:
    """Ordered / received / pending for one product of an order."""

    product_sku: str
    ordered: Decimal
    received: Decimal
    unit_cost: Decimal

    @property
    def pending(self) -> Decimal:
        return self.ordered - self.received


@dataclass(frozen=True)
class ReceiptPlan:
    """
    What a receipt will write.

    Guarantees:
        - ``movements`` is empty only when nothing is pending (total
          receipt) -- explicit receipts always carry one movement per entry.
        - ``pending_after == pending_before - sum(m.qty for m in movements)``.
    """

    movements: tuple[PlannedMovement, ...]
    ordered_total: Decimal
    pending_before: Decimal
    pending_after: Decimal
    fulfillment: Fulfillment


def order_positions(
    lines: Sequence[OrderedLine],
    received: Mapping[str, Decimal],
) -> dict[str, ProductPosition]:
    """
    Per-product position of an order, keyed by sku in first-line order.

    ``received`` maps sku to the summed movement quantity referencing the
    order; products missing from it have received nothing.
    """
    ordered: dict[str, Decimal] = {}
    cost: dict[str, tuple[int, Decimal]] = {}
    for line in sorted(lines, key=lambda l: l.line_number):
        ordered[line.product_sku] = ordered.get(line.product_sku, ZERO) + line.qty
        cost[line.product_sku] = (line.line_number, line.unit_cost)

    return {
        sku: ProductPosition(
            product_sku=sku,
            ordered=qty,
            received=received.get(sku, ZERO),
            unit_cost=cost[sku][1],
        )
        for sku, qty in ordered.items()
    }


def _fulfillment(pending_after: Decimal, ordered_total: Decimal) -> Fulfillment:
    if pending_after <= ZERO:
        return Fulfillment.RECEIVED
    if pending_after == ordered_total:
        return Fulfillment.UNCHANGED
    return Fulfillment.PARTIAL


@traced_engine(
    "receiving_plan", "1.0", fingerprint_fields=("lines", "received", "items")
)
def plan_receipt(
    *,
    order_code: str,
    lines: Sequence[OrderedLine],
    received: Mapping[str, Decimal],
    items: Sequence[ReceiptItem] | None = None,
) -> ReceiptPlan:
    """
    Plan a total (``items`` empty or None) or partial receipt.

    Raises:
        UnknownOrderProductError: Item product is not on the order.
        NonPositiveQuantityError: Item qty <= 0.
        OverReceiptError: Cumulative item qty for a product exceeds pending.
    """
    positions = order_positions(lines, received)
    ordered_total = sum((p.ordered for p in positions.values()), ZERO)
    pending_before = sum(
        (max(p.pending, ZERO) for p in positions.values()), ZERO
    )

    movements: list[PlannedMovement] = []
    if not items:
        for position in positions.values():
            if position.pending > ZERO:
                movements.append(
                    PlannedMovement(
                        product_sku=position.product_sku,
                        qty=position.pending,
                        unit_cost=position.unit_cost,
                    )
                )
    else:
        taken: dict[str, Decimal] = {}
        for item in items:
            position = positions.get(item.product_sku)
            if position is None:
                raise UnknownOrderProductError(order_code, item.product_sku)
            if item.qty <= ZERO:
                raise NonPositiveQuantityError(item.product_sku, item.qty)
            already = taken.get(item.product_sku, ZERO)
            available = position.pending - already
            if item.qty > available:
                raise OverReceiptError(
                    item.product_sku, item.qty, max(available, ZERO)
                )
            taken[item.product_sku] = already + item.qty
            movements.append(
                PlannedMovement(
                    product_sku=item.product_sku,
                    qty=item.qty,
                    unit_cost=position.unit_cost,
                )
            )

    posted = sum((m.qty for m in movements), ZERO)
    pending_after = pending_before - posted
    return ReceiptPlan(
        movements=tuple(movements),
        ordered_total=ordered_total,
        pending_before=pending_before,
        pending_after=pending_after,
        fulfillment=_fulfillment(pending_after, ordered_total),
    )
