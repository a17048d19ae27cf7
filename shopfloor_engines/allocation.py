"""
Module: shopfloor_engines.allocation
Responsibility:
    Split desired purchase-order lines across the pending quantities of one
    requisition's lines for the same product, FIFO by requisition line
    number, and report any quantity that cannot be covered.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import shopfloor_kernel exceptions, types and logging.

Invariants enforced:
    - Coverage bound: for every requisition line, consumed + planned never
      exceeds requested_qty.
    - Conservation: for every desired line, the quantities of its splits add
      up to the desired quantity exactly.
    - Explicit FIFO: candidate lines are consumed in ascending line_number,
      never in incidental input order.
    - All-or-nothing: any shortfall raises; no partial plan is returned.

Failure modes:
    - AllocationShortfallError naming the first product whose desired
      quantity cannot be fully covered.
    - ValueError on non-positive desired quantity or negative unit cost
      (callers validate before building DesiredLine).

Usage:
    from shopfloor_engines.allocation import (
        AllocationEngine, CoverageCandidate, DesiredLine,
    )

    plan = AllocationEngine().allocate(
        candidates=[
            CoverageCandidate("l1", "BOLT-M8", 1, Decimal("60")),
            CoverageCandidate("l2", "BOLT-M8", 2, Decimal("40")),
        ],
        desired=[DesiredLine("BOLT-M8", Decimal("80"), Decimal("0.25"))],
    )
    # plan.splits -> (l1: 60, l2: 20); plan.total -> Decimal("20.00")
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from shopfloor_engines.tracer import traced_engine
from shopfloor_kernel.db.types import ZERO
from shopfloor_kernel.exceptions import AllocationShortfallError
from shopfloor_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class CoverageCandidate:
    """
    A requisition line that order lines may cover.

    Contract:
        ``consumed_qty`` is the sum of quantities already ordered against
        this line by earlier orders.
    """

    line_id: str
    product_sku: str
    line_number: int
    requested_qty: Decimal
    consumed_qty: Decimal = ZERO

    @property
    def pending_qty(self) -> Decimal:
        remaining = self.requested_qty - self.consumed_qty
        return remaining if remaining > ZERO else ZERO


@dataclass(frozen=True)
class DesiredLine:
    """One line of the order the caller wants to place."""

    product_sku: str
    qty: Decimal
    unit_cost: Decimal

    def __post_init__(self) -> None:
        if self.qty <= ZERO:
            raise ValueError("Desired quantity must be positive")
        if self.unit_cost < ZERO:
            raise ValueError("Unit cost cannot be negative")


@dataclass(frozen=True)
class AllocationSplit:
    """The part of a desired line covered by one requisition line."""

    product_sku: str
    coverage_line_id: str
    qty: Decimal
    unit_cost: Decimal

    @property
    def amount(self) -> Decimal:
        return self.qty * self.unit_cost


@dataclass(frozen=True)
class AllocationPlan:
    """
    Complete allocation result.

    Guarantees:
        - ``total == sum(split.amount for split in splits)``.
        - Splits appear in desired-line order, then requisition line order.
    """

    splits: tuple[AllocationSplit, ...]
    total: Decimal

    def consumed_by_line(self) -> dict[str, Decimal]:
        """Quantity this plan takes from each requisition line."""
        consumed: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for split in self.splits:
            consumed[split.coverage_line_id] += split.qty
        return dict(consumed)


class AllocationEngine:
    """
    Greedy FIFO allocator over requisition lines.

    Contract:
        Pure.  Given the requisition's candidate lines and the desired order
        lines, returns the full split plan or raises.

    Non-goals:
        - Does not check that the requisition is approved.
        - Does not persist anything.
    """

    @traced_engine(
        "allocation", "1.0", fingerprint_fields=("candidates", "desired")
    )
    def allocate(
        self,
        *,
        candidates: Sequence[CoverageCandidate],
        desired: Sequence[DesiredLine],
    ) -> AllocationPlan:
        """
        Plan the coverage of ``desired`` against ``candidates``.

        Preconditions:
            - Every DesiredLine has qty > 0 and unit_cost >= 0.
        Postconditions:
            - Each desired line is covered exactly by its splits.
            - No candidate's consumed + planned exceeds requested.

        Raises:
            AllocationShortfallError: If a desired line cannot be covered.
        """
        logger.info(
            "allocation_started",
            extra={
                "candidate_count": len(candidates),
                "desired_count": len(desired),
            },
        )

        by_product: dict[str, list[CoverageCandidate]] = defaultdict(list)
        for candidate in candidates:
            by_product[candidate.product_sku].append(candidate)
        for lines in by_product.values():
            lines.sort(key=lambda c: c.line_number)

        # Pending carries across desired lines of the same call.
        pending: dict[str, Decimal] = {
            c.line_id: c.pending_qty for c in candidates
        }

        splits: list[AllocationSplit] = []
        for line in desired:
            remaining = line.qty
            for candidate in by_product.get(line.product_sku, ()):
                if remaining <= ZERO:
                    break
                available = pending[candidate.line_id]
                if available <= ZERO:
                    continue
                take = min(available, remaining)
                pending[candidate.line_id] = available - take
                remaining -= take
                splits.append(
                    AllocationSplit(
                        product_sku=line.product_sku,
                        coverage_line_id=candidate.line_id,
                        qty=take,
                        unit_cost=line.unit_cost,
                    )
                )

            if remaining > ZERO:
                logger.warning(
                    "allocation_shortfall",
                    extra={
                        "product_sku": line.product_sku,
                        "requested": str(line.qty),
                        "unallocated": str(remaining),
                    },
                )
                raise AllocationShortfallError(
                    product_sku=line.product_sku,
                    requested=line.qty,
                    unallocated=remaining,
                )

        total = sum((s.amount for s in splits), ZERO)
        logger.info(
            "allocation_completed",
            extra={"split_count": len(splits), "total": str(total)},
        )
        return AllocationPlan(splits=tuple(splits), total=total)
