"""
Purchasing Domain Models.

The nouns of purchasing: providers, requisitions (SC), purchase orders (OC)
and the inputs callers hand to the ledgers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class RequisitionStatus(str, Enum):
    """Requisition lifecycle states."""
    PENDING_ADMIN = "PENDING_ADMIN"
    PENDING_GERENCIA = "PENDING_GERENCIA"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class OrderStatus(str, Enum):
    """Purchase order fulfillment states."""
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


RECEIVABLE_ORDER_STATES = frozenset({OrderStatus.OPEN.value, OrderStatus.PARTIAL.value})


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequisitionLineInput:
    """A line requested when creating a requisition."""
    product_sku: str
    qty: Decimal
    estimated_unit_cost: Decimal | None = None


@dataclass(frozen=True)
class CostEdit:
    """New estimated unit cost for one requisition line (None clears it)."""
    line_id: UUID
    estimated_unit_cost: Decimal | None


@dataclass(frozen=True)
class OrderLineInput:
    """A line the caller wants on a purchase order."""
    product_sku: str
    qty: Decimal
    unit_cost: Decimal


@dataclass(frozen=True)
class ProviderInput:
    name: str
    tax_id: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    preferred_currency: str | None = None


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Provider:
    id: UUID
    name: str
    tax_id: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    preferred_currency: str | None = None


@dataclass(frozen=True)
class RequisitionLine:
    """A line item on a purchase requisition."""
    id: UUID
    requisition_id: UUID
    line_number: int
    product_sku: str
    requested_qty: Decimal
    estimated_unit_cost: Decimal | None = None

    @property
    def estimated_total(self) -> Decimal:
        return self.requested_qty * (self.estimated_unit_cost or Decimal("0"))


@dataclass(frozen=True)
class Requisition:
    """A purchase requisition (SC)."""
    id: UUID
    code: str | None
    requester_id: UUID
    requested_at: datetime
    currency: str
    total_estimated: Decimal
    status: RequisitionStatus
    job_ref: str | None = None
    note: str | None = None
    lines: tuple[RequisitionLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A line on a purchase order, linked to the requisition line it covers."""
    id: UUID
    order_id: UUID
    line_number: int
    product_sku: str
    qty: Decimal
    unit_cost: Decimal
    coverage_line_id: UUID

    @property
    def line_total(self) -> Decimal:
        return self.qty * self.unit_cost


@dataclass(frozen=True)
class PurchaseOrder:
    """A purchase order (OC)."""
    id: UUID
    code: str
    requisition_id: UUID
    provider_id: UUID
    currency: str
    total: Decimal
    status: OrderStatus
    invoice_ref: str | None = None
    version: int = 1
    last_received_at: datetime | None = None
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineCoverage:
    line_id: UUID
    line_number: int
    product_sku: str
    requested: Decimal
    covered: Decimal

    @property
    def pending(self) -> Decimal:
        remaining = self.requested - self.covered
        return remaining if remaining > 0 else Decimal("0")


@dataclass(frozen=True)
class RequisitionCoverage:
    requisition_id: UUID
    lines: tuple[LineCoverage, ...]

    @property
    def requested_total(self) -> Decimal:
        return sum((l.requested for l in self.lines), Decimal("0"))

    @property
    def covered_total(self) -> Decimal:
        return sum((l.covered for l in self.lines), Decimal("0"))

    @property
    def pending_total(self) -> Decimal:
        return sum((l.pending for l in self.lines), Decimal("0"))


@dataclass(frozen=True)
class ProductReceipt:
    product_sku: str
    ordered: Decimal
    received: Decimal

    @property
    def pending(self) -> Decimal:
        remaining = self.ordered - self.received
        return remaining if remaining > 0 else Decimal("0")


@dataclass(frozen=True)
class OrderReceiptStatus:
    order_id: UUID
    order_code: str
    status: OrderStatus
    products: tuple[ProductReceipt, ...]

    @property
    def pending_total(self) -> Decimal:
        return sum((p.pending for p in self.products), Decimal("0"))
