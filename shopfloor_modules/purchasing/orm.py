"""
SQLAlchemy ORM persistence models for the Purchasing module.

Responsibility
--------------
Database-backed persistence for providers, purchase requisitions (SC) with
their lines, and purchase orders (OC) with their coverage-linked lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``RequisitionLedger``,
``OrderLedger``, ``ProviderRegistry`` and ``ReceivingProcessor``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* Quantities and costs use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Enum fields stored as String(30).
* ``requisition.code`` and ``order.code`` are unique; a requisition code
  may be NULL (degraded creation path, repaired by the code backfill).
* Every order line points at exactly one requisition line
  (``coverage_line_id``).
* ``PurchaseOrderModel.version`` is an optimistic version counter; a
  stale UPDATE raises ``StaleDataError`` at flush.
* Job references are ``String(100)`` with no FK: jobs live outside this
  schema.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopfloor_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# ProviderModel
# ---------------------------------------------------------------------------


class ProviderModel(TrackedBase):
    """
    A goods provider (supplier).

    Guarantees:
        - ``tax_id`` is unique.
    """

    __tablename__ = "purchasing_providers"

    __table_args__ = (
        UniqueConstraint("tax_id", name="uq_provider_tax_id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(20), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    preferred_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    def to_dto(self):
        from shopfloor_modules.purchasing.models import Provider

        return Provider(
            id=self.id,
            name=self.name,
            tax_id=self.tax_id,
            contact_name=self.contact_name,
            email=self.email,
            phone=self.phone,
            preferred_currency=self.preferred_currency,
        )

    def __repr__(self) -> str:
        return f"<ProviderModel {self.tax_id} {self.name}>"


# ---------------------------------------------------------------------------
# PurchaseRequisitionModel
# ---------------------------------------------------------------------------


class PurchaseRequisitionModel(TrackedBase):
    """
    A purchase requisition (SC).

    Guarantees:
        - ``code`` is unique when present (``SC-<year>-<seq>``).
        - ``total_estimated`` is recomputed from the full line set on every
          line edit.
        - Never physically deleted.
    """

    __tablename__ = "purchasing_requisitions"

    __table_args__ = (
        UniqueConstraint("code", name="uq_requisition_code"),
        Index("idx_requisition_status", "status"),
        Index("idx_requisition_requested_at", "requested_at"),
    )

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    requester_id: Mapped[UUID] = mapped_column(nullable=False)
    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    job_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_estimated: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)

    lines: Mapped[list["RequisitionLineModel"]] = relationship(
        "RequisitionLineModel",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="RequisitionLineModel.line_number",
        lazy="selectin",
    )

    def recompute_total(self) -> Decimal:
        """Recompute ``total_estimated`` from every line and store it."""
        self.total_estimated = sum(
            (line.requested_qty * (line.estimated_unit_cost or Decimal("0"))
             for line in self.lines),
            Decimal("0"),
        )
        return self.total_estimated

    def to_dto(self):
        from shopfloor_modules.purchasing.models import Requisition, RequisitionStatus

        return Requisition(
            id=self.id,
            code=self.code,
            requester_id=self.requester_id,
            requested_at=self.requested_at,
            currency=self.currency,
            total_estimated=self.total_estimated,
            status=RequisitionStatus(self.status),
            job_ref=self.job_ref,
            note=self.note,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<PurchaseRequisitionModel {self.code or self.id} [{self.status}]>"


# ---------------------------------------------------------------------------
# RequisitionLineModel
# ---------------------------------------------------------------------------


class RequisitionLineModel(TrackedBase):
    """
    A line item on a purchase requisition.

    Guarantees:
        - (requisition_id, line_number) is unique.
        - ``line_number`` is the explicit FIFO key used by allocation.
    """

    __tablename__ = "purchasing_requisition_lines"

    __table_args__ = (
        UniqueConstraint(
            "requisition_id", "line_number",
            name="uq_requisition_line_number",
        ),
        Index("idx_req_line_requisition", "requisition_id"),
    )

    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchasing_requisitions.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_sku: Mapped[str] = mapped_column(
        String(50), ForeignKey("inventory_products.sku"), nullable=False,
    )
    requested_qty: Mapped[Decimal] = mapped_column(nullable=False)
    estimated_unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    requisition: Mapped["PurchaseRequisitionModel"] = relationship(
        "PurchaseRequisitionModel",
        back_populates="lines",
    )

    def to_dto(self):
        from shopfloor_modules.purchasing.models import RequisitionLine

        return RequisitionLine(
            id=self.id,
            requisition_id=self.requisition_id,
            line_number=self.line_number,
            product_sku=self.product_sku,
            requested_qty=self.requested_qty,
            estimated_unit_cost=self.estimated_unit_cost,
        )

    def __repr__(self) -> str:
        return f"<RequisitionLineModel #{self.line_number} {self.product_sku} qty={self.requested_qty}>"


# ---------------------------------------------------------------------------
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    A purchase order (OC) issued to a provider.

    Guarantees:
        - ``code`` is unique and caller-supplied.
        - Created only from an APPROVED requisition.
        - ``version`` increments on every UPDATE (optimistic lock).
    """

    __tablename__ = "purchasing_orders"

    __table_args__ = (
        UniqueConstraint("code", name="uq_order_code"),
        Index("idx_order_requisition", "requisition_id"),
        Index("idx_order_provider", "provider_id"),
        Index("idx_order_status", "status"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchasing_requisitions.id"), nullable=False,
    )
    provider_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchasing_providers.id"), nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    invoice_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        "PurchaseOrderLineModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLineModel.line_number",
        lazy="selectin",
    )

    requisition: Mapped["PurchaseRequisitionModel"] = relationship(
        "PurchaseRequisitionModel",
        lazy="selectin",
    )

    def to_dto(self):
        from shopfloor_modules.purchasing.models import OrderStatus, PurchaseOrder

        return PurchaseOrder(
            id=self.id,
            code=self.code,
            requisition_id=self.requisition_id,
            provider_id=self.provider_id,
            currency=self.currency,
            total=self.total,
            status=OrderStatus(self.status),
            invoice_ref=self.invoice_ref,
            version=self.version,
            last_received_at=self.last_received_at,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.code} [{self.status}] v{self.version}>"


# ---------------------------------------------------------------------------
# PurchaseOrderLineModel
# ---------------------------------------------------------------------------


class PurchaseOrderLineModel(TrackedBase):
    """
    A line on a purchase order.

    Guarantees:
        - (order_id, line_number) is unique.
        - ``coverage_line_id`` links back to the requisition line it fulfills.
    """

    __tablename__ = "purchasing_order_lines"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_order_line_number"),
        Index("idx_order_line_order", "order_id"),
        Index("idx_order_line_coverage", "coverage_line_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchasing_orders.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_sku: Mapped[str] = mapped_column(
        String(50), ForeignKey("inventory_products.sku"), nullable=False,
    )
    qty: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    coverage_line_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchasing_requisition_lines.id"), nullable=False,
    )

    order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="lines",
    )

    def to_dto(self):
        from shopfloor_modules.purchasing.models import PurchaseOrderLine

        return PurchaseOrderLine(
            id=self.id,
            order_id=self.order_id,
            line_number=self.line_number,
            product_sku=self.product_sku,
            qty=self.qty,
            unit_cost=self.unit_cost,
            coverage_line_id=self.coverage_line_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderLineModel #{self.line_number} {self.product_sku} qty={self.qty}>"
