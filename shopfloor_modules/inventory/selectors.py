"""
Module: shopfloor_modules.inventory.selectors
Responsibility: Read-only queries over the inventory movement ledger that
    feed receiving, cost recalculation and the order receipt view.
Architecture position: Modules > Inventory > Selectors.  Built on
    shopfloor_kernel.selectors.BaseSelector.

Invariants enforced:
    - Read-only: no add/flush/commit.
    - "Most recent" is (moved_at DESC, entry_seq DESC): entry_seq breaks ties
      between movements posted in the same instant.
    - Only PURCHASE_RECEIPT movements with qty > 0 are cost samples.

Failure modes:
    - Returns empty collections when nothing matches; never raises on
      absence of data.
"""

from decimal import Decimal

from sqlalchemy import func, select

from shopfloor_engines.costing import CostSample
from shopfloor_kernel.selectors.base import BaseSelector
from shopfloor_modules.inventory.models import MovementType, ReferenceTable
from shopfloor_modules.inventory.orm import InventoryMovementModel, ProductModel


class MovementSelector(BaseSelector[InventoryMovementModel]):
    """Queries over inventory movements and products."""

    def recent_receipt_samples(self, product_sku: str, window: int) -> list[CostSample]:
        """Up to ``window`` positive purchase receipts of a product, newest first."""
        rows = self.session.execute(
            select(InventoryMovementModel.qty, InventoryMovementModel.unit_cost)
            .where(InventoryMovementModel.product_sku == product_sku)
            .where(
                InventoryMovementModel.movement_type
                == MovementType.PURCHASE_RECEIPT.value
            )
            .where(InventoryMovementModel.qty > 0)
            .order_by(
                InventoryMovementModel.moved_at.desc(),
                InventoryMovementModel.entry_seq.desc(),
            )
            .limit(window)
        ).all()
        return [CostSample(qty=row.qty, unit_cost=row.unit_cost) for row in rows]

    def received_by_product(self, order_code: str) -> dict[str, Decimal]:
        """Summed movement qty per product referencing ("OC", order_code)."""
        rows = self.session.execute(
            select(
                InventoryMovementModel.product_sku,
                func.sum(InventoryMovementModel.qty).label("received"),
            )
            .where(
                InventoryMovementModel.reference_table
                == ReferenceTable.PURCHASE_ORDER.value
            )
            .where(InventoryMovementModel.reference_id == order_code)
            .group_by(InventoryMovementModel.product_sku)
        ).all()
        return {row.product_sku: Decimal(row.received) for row in rows}

    def movements_for_order(self, order_code: str) -> list:
        """Movement DTOs referencing an order, in entry order."""
        models = self.session.execute(
            select(InventoryMovementModel)
            .where(
                InventoryMovementModel.reference_table
                == ReferenceTable.PURCHASE_ORDER.value
            )
            .where(InventoryMovementModel.reference_id == order_code)
            .order_by(InventoryMovementModel.entry_seq)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def existing_skus(self, skus) -> set[str]:
        """The subset of ``skus`` that name a product."""
        wanted = set(skus)
        if not wanted:
            return set()
        return set(
            self.session.execute(
                select(ProductModel.sku).where(ProductModel.sku.in_(wanted))
            ).scalars()
        )

    def get_product(self, sku: str):
        model = self.session.execute(
            select(ProductModel).where(ProductModel.sku == sku)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None
