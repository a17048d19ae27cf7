"""
Module: shopfloor_modules.purchasing.selectors
Responsibility: Read-only views of requisition coverage and order receipt
    progress, plus the coverage sums the order ledger allocates against.
Architecture position: Modules > Purchasing > Selectors.

Invariants enforced:
    - Read-only: no add/flush/commit.
    - Coverage of a requisition line is the sum of order line quantities
      pointing at it.
    - Pending quantities are clamped at zero in the views.

Failure modes:
    - Returns None for unknown ids.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from shopfloor_kernel.selectors.base import BaseSelector
from shopfloor_modules.inventory.selectors import MovementSelector
from shopfloor_modules.purchasing.models import (
    LineCoverage,
    OrderReceiptStatus,
    OrderStatus,
    ProductReceipt,
    PurchaseOrder,
    Requisition,
    RequisitionCoverage,
)
from shopfloor_modules.purchasing.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    PurchaseRequisitionModel,
)


class PurchasingSelector(BaseSelector[PurchaseRequisitionModel]):
    """
    Read side of purchasing.

    Contract:
        Returns frozen DTOs.  Never writes.
    """

    def get_requisition(self, requisition_id: UUID) -> Requisition | None:
        model = self.session.get(PurchaseRequisitionModel, requisition_id)
        return model.to_dto() if model is not None else None

    def get_requisition_by_code(self, code: str) -> Requisition | None:
        model = self.session.execute(
            select(PurchaseRequisitionModel).where(PurchaseRequisitionModel.code == code)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def get_order(self, order_id: UUID) -> PurchaseOrder | None:
        model = self.session.get(PurchaseOrderModel, order_id)
        return model.to_dto() if model is not None else None

    def order_count(self, requisition_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PurchaseOrderModel.id))
            .where(PurchaseOrderModel.requisition_id == requisition_id)
        ).scalar_one()

    def covered_by_line(self, line_ids) -> dict[UUID, Decimal]:
        """Summed ordered qty per requisition line id."""
        ids = list(line_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(
                PurchaseOrderLineModel.coverage_line_id,
                func.sum(PurchaseOrderLineModel.qty).label("covered"),
            )
            .where(PurchaseOrderLineModel.coverage_line_id.in_(ids))
            .group_by(PurchaseOrderLineModel.coverage_line_id)
        ).all()
        return {row.coverage_line_id: Decimal(row.covered) for row in rows}

    def requisition_coverage(self, requisition_id: UUID) -> RequisitionCoverage | None:
        """Requested / covered / pending per requisition line."""
        model = self.session.get(PurchaseRequisitionModel, requisition_id)
        if model is None:
            return None
        covered = self.covered_by_line(line.id for line in model.lines)
        return RequisitionCoverage(
            requisition_id=model.id,
            lines=tuple(
                LineCoverage(
                    line_id=line.id,
                    line_number=line.line_number,
                    product_sku=line.product_sku,
                    requested=line.requested_qty,
                    covered=covered.get(line.id, Decimal("0")),
                )
                for line in model.lines
            ),
        )

    def order_receipt_status(self, order_id: UUID) -> OrderReceiptStatus | None:
        """Ordered / received / pending per product of an order."""
        model = self.session.get(PurchaseOrderModel, order_id)
        if model is None:
            return None
        received = MovementSelector(self.session).received_by_product(model.code)
        ordered: dict[str, Decimal] = {}
        for line in model.lines:
            ordered[line.product_sku] = ordered.get(line.product_sku, Decimal("0")) + line.qty
        return OrderReceiptStatus(
            order_id=model.id,
            order_code=model.code,
            status=OrderStatus(model.status),
            products=tuple(
                ProductReceipt(
                    product_sku=sku,
                    ordered=qty,
                    received=received.get(sku, Decimal("0")),
                )
                for sku, qty in ordered.items()
            ),
        )
