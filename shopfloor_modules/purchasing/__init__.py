"""
Purchasing Module (``shopfloor_modules.purchasing``).

Responsibility
--------------
Purchase requisitions (SC) with their approval workflow and sequential
codes, providers, and purchase orders (OC) allocated FIFO against the
requisition lines they cover.

Architecture position
---------------------
**Modules layer** -- domain models, the requisition workflow, ORM
persistence, read-side selectors and the ledgers in ``service`` and
``providers``.

Failure modes
-------------
* Every ledger operation returns an ``OperationResult``; business-rule
  failures carry the ``ShopfloorError.code`` as status.
"""

from shopfloor_modules.purchasing.models import (
    CostEdit,
    OrderLineInput,
    OrderStatus,
    Provider,
    ProviderInput,
    PurchaseOrder,
    PurchaseOrderLine,
    Requisition,
    RequisitionLine,
    RequisitionLineInput,
    RequisitionStatus,
)
from shopfloor_modules.purchasing.workflows import (
    COST_EDITABLE_STATES,
    REQUISITION_WORKFLOW,
)

__all__ = [
    "CostEdit",
    "OrderLineInput",
    "OrderStatus",
    "Provider",
    "ProviderInput",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "Requisition",
    "RequisitionLine",
    "RequisitionLineInput",
    "RequisitionStatus",
    "COST_EDITABLE_STATES",
    "REQUISITION_WORKFLOW",
]
