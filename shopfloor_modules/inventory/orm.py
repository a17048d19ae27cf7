"""
Module: shopfloor_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence models for the Inventory module:
    products and the inventory movement ledger.

Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (shopfloor_kernel.db.base).

Invariants enforced:
    - Quantities and costs use Decimal (Numeric(38,9)) -- NEVER float.
    - ``InventoryMovementModel`` is append-only (``__immutable__``); the
      kernel immutability listeners reject UPDATE and DELETE.
    - ``entry_seq`` is unique and allocated by SequenceService; together
      with ``moved_at`` it defines "most recent".
    - ``ProductModel.unit_cost`` is written only by ReceivingProcessor and
      CostRecalculator.

Failure modes:
    - IntegrityError on duplicate sku or entry_seq.
    - ImmutabilityViolationError on any movement UPDATE/DELETE.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor_kernel.db.base import TrackedBase


# =============================================================================
# ProductModel
# =============================================================================

class ProductModel(TrackedBase):
    """
    A stocked product, identified by its sku.

    Guarantees:
        - ``sku`` is unique and is the business id referenced by other tables.
    """

    __tablename__ = "inventory_products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False, default="UND")
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def to_dto(self):
        from shopfloor_modules.inventory.models import Product

        return Product(
            id=self.id,
            sku=self.sku,
            name=self.name,
            unit_of_measure=self.unit_of_measure,
            unit_cost=self.unit_cost,
        )

    def __repr__(self) -> str:
        return f"<ProductModel {self.sku} cost={self.unit_cost}>"


# =============================================================================
# InventoryMovementModel
# =============================================================================

class InventoryMovementModel(TrackedBase):
    """
    An inventory movement ledger entry.

    Guarantees:
        - Append-only.
        - ``qty`` is signed: inbound positive, outbound negative.
        - Receipts against an order carry reference ("OC", order.code).
    """

    __tablename__ = "inventory_movements"

    __immutable__ = True

    __table_args__ = (
        UniqueConstraint("entry_seq", name="uq_movement_entry_seq"),
        Index("idx_movement_reference", "reference_table", "reference_id"),
        Index("idx_movement_product_type", "product_sku", "movement_type", "moved_at"),
    )

    entry_seq: Mapped[int] = mapped_column(nullable=False)
    moved_at: Mapped[datetime] = mapped_column(nullable=False)
    product_sku: Mapped[str] = mapped_column(
        String(50), ForeignKey("inventory_products.sku"), nullable=False,
    )
    movement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    qty: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    reference_table: Mapped[str | None] = mapped_column(String(10), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self):
        from shopfloor_modules.inventory.models import InventoryMovement, MovementType

        return InventoryMovement(
            id=self.id,
            entry_seq=self.entry_seq,
            moved_at=self.moved_at,
            product_sku=self.product_sku,
            movement_type=MovementType(self.movement_type),
            qty=self.qty,
            unit_cost=self.unit_cost,
            reference_table=self.reference_table,
            reference_id=self.reference_id,
            note=self.note,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryMovementModel #{self.entry_seq} {self.movement_type} "
            f"{self.product_sku} qty={self.qty}>"
        )
