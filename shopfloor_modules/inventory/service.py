"""
Inventory Module Service (``shopfloor_modules.inventory.service``).

Responsibility
--------------
Posts goods receipts against purchase orders: one ``PURCHASE_RECEIPT``
movement per received product entry, the moving-average cost update of each
product, the order's fulfillment state, invoice reference and version, and
the job-cost notification, all in one transaction.

Architecture position
---------------------
**Modules layer** -- ``ReceivingProcessor`` is the sole public entry point
for receipts.  It composes ``shopfloor_engines.receiving`` (the plan),
``shopfloor_engines.costing`` (the cost formula), the kernel
``SequenceService`` (movement entry sequence) and the
``OutboxDispatcher`` (post-commit notification).

Invariants enforced
-------------------
* Received never exceeds ordered: pending is re-derived from the movement
  ledger inside the transaction, then checked by the plan.
* Movements are append-only and carry reference ("OC", order code).
* Two receipts racing on the same order cannot both commit: the order's
  version counter rejects the later UPDATE.
* A failing job-cost hook never aborts a receipt.

Failure modes
-------------
* ``ORDER_NOT_FOUND`` / ``ORDER_NOT_RECEIVABLE`` / receipt validation codes
  -> failed ``OperationResult``, nothing written.
* ``CONCURRENCY_CONFLICT`` -> another receipt committed first; rolled back.
* Database failure -> ``INFRASTRUCTURE_ERROR``.

Usage::

    processor = ReceivingProcessor(session, guard, job_cost_hook=hook, clock=clock)
    result = processor.receive_order(order_id, actor_id=user_id)
    result.data["new_state"]   # "RECEIVED"
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from shopfloor_config import PurchasingSettings, get_settings
from shopfloor_engines.costing import CostSample, weighted_average_cost
from shopfloor_engines.receiving import (
    Fulfillment,
    OrderedLine,
    ReceiptItem,
    plan_receipt,
)
from shopfloor_kernel.domain.clock import Clock, SystemClock
from shopfloor_kernel.domain.results import OperationResult
from shopfloor_kernel.exceptions import (
    ConcurrencyConflictError,
    OrderNotFoundError,
    OrderNotReceivableError,
    ValidationError,
)
from shopfloor_kernel.logging_config import get_logger
from shopfloor_kernel.services.sequence_service import SequenceService
from shopfloor_modules._operation_helpers import parse_decimal, run_operation
from shopfloor_modules.inventory.models import MovementType, ReferenceTable
from shopfloor_modules.inventory.orm import InventoryMovementModel, ProductModel
from shopfloor_modules.inventory.selectors import MovementSelector
from shopfloor_modules.purchasing.models import RECEIVABLE_ORDER_STATES, OrderStatus
from shopfloor_modules.purchasing.orm import PurchaseOrderModel
from shopfloor_services.collaborators import JobCostHook, NullJobCostHook, PurchasesGuard
from shopfloor_services.outbox import OutboxDispatcher

logger = get_logger("modules.inventory.service")

_STATE_BY_FULFILLMENT = {
    Fulfillment.RECEIVED: OrderStatus.RECEIVED.value,
    Fulfillment.PARTIAL: OrderStatus.PARTIAL.value,
}


def _receipt_items(items: Sequence[Any] | None) -> list[ReceiptItem]:
    """Accept ReceiptItem instances or ``{"product_sku", "qty"}`` mappings."""
    parsed = []
    for index, item in enumerate(items or (), start=1):
        if isinstance(item, Mapping):
            sku, qty = item.get("product_sku"), item.get("qty")
        else:
            sku, qty = item.product_sku, item.qty
        if not sku:
            raise ValidationError(f"items[{index}].product_sku", "is required")
        parsed.append(ReceiptItem(product_sku=sku, qty=parse_decimal(qty, f"items[{index}].qty")))
    return parsed


class ReceivingProcessor:
    """
    Posts goods receipts.

    Contract:
        ``receive_order`` returns an ``OperationResult``.  The permission
        guard runs first and its ``AuthorizationError`` propagates.

    Guarantees:
        - An empty or missing item list receives everything still pending.
        - A partial receipt is validated as a whole before anything is
          written.
        - The outbox event commits with the receipt; delivery is attempted
          after commit and its failure is only logged.

    Non-goals:
        - Does not issue stock to jobs or post adjustments.
    """

    def __init__(
        self,
        session: Session,
        guard: PurchasesGuard,
        settings: PurchasingSettings | None = None,
        job_cost_hook: JobCostHook | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._guard = guard
        self._settings = settings or get_settings()
        self._clock = clock or SystemClock()
        self._movements = MovementSelector(session)
        self._sequences = SequenceService(session)
        self._outbox = OutboxDispatcher(
            session,
            job_cost_hook or NullJobCostHook(),
            clock=self._clock,
            max_attempts=self._settings.outbox_max_attempts,
        )

    def _post_movement(
        self,
        product: ProductModel,
        *,
        qty,
        unit_cost,
        order_code: str,
        moved_at,
        actor_id: UUID,
    ) -> InventoryMovementModel:
        history = self._movements.recent_receipt_samples(
            product.sku, self._settings.cost_window
        )
        new_cost = weighted_average_cost(
            history=history,
            receipt=CostSample(qty=qty, unit_cost=unit_cost),
            window=self._settings.cost_window,
            decimal_places=self._settings.cost_decimal_places,
        )
        movement = InventoryMovementModel(
            entry_seq=self._sequences.next_value(SequenceService.INVENTORY_MOVEMENT),
            moved_at=moved_at,
            product_sku=product.sku,
            movement_type=MovementType.PURCHASE_RECEIPT.value,
            qty=qty,
            unit_cost=unit_cost,
            reference_table=ReferenceTable.PURCHASE_ORDER.value,
            reference_id=order_code,
            note=f"Receipt for order {order_code}",
            created_by_id=actor_id,
        )
        self._session.add(movement)
        if new_cost is not None and new_cost != product.unit_cost:
            logger.info(
                "product_cost_updated",
                extra={
                    "product_sku": product.sku,
                    "old_cost": str(product.unit_cost),
                    "new_cost": str(new_cost),
                },
            )
            product.unit_cost = new_cost
            product.updated_by_id = actor_id
        self._session.flush()
        return movement

    def receive_order(
        self,
        order_id: UUID,
        *,
        actor_id: UUID,
        invoice_ref: str | None = None,
        items: Sequence[Any] | None = None,
    ) -> OperationResult:
        """
        Receive goods against an ``OPEN`` or ``PARTIAL`` order.

        Args:
            order_id: The purchase order.
            actor_id: Who posts the receipt.
            invoice_ref: Provider invoice; replaces the stored one when given.
            items: Partial receipt entries.  None or empty means receive
                everything still pending.

        Returns:
            OK with ``data = {"order_id", "code", "new_state",
            "movement_count", "movement_ids"}``.
        """
        self._guard.assert_can_write_purchases()
        enqueued: list[UUID] = []

        def work() -> OperationResult:
            receipt_items = _receipt_items(items)
            order = self._session.get(PurchaseOrderModel, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.status not in RECEIVABLE_ORDER_STATES:
                raise OrderNotReceivableError(order.id, order.status)

            plan = plan_receipt(
                order_code=order.code,
                lines=[
                    OrderedLine(
                        product_sku=line.product_sku,
                        line_number=line.line_number,
                        qty=line.qty,
                        unit_cost=line.unit_cost,
                    )
                    for line in order.lines
                ],
                received=self._movements.received_by_product(order.code),
                items=receipt_items,
            )

            moved_at = self._clock.now()
            products: dict[str, ProductModel] = {}
            movements = []
            for planned in plan.movements:
                product = products.get(planned.product_sku)
                if product is None:
                    product = self._session.execute(
                        select(ProductModel)
                        .where(ProductModel.sku == planned.product_sku)
                        .with_for_update()
                    ).scalar_one()
                    products[planned.product_sku] = product
                movements.append(
                    self._post_movement(
                        product,
                        qty=planned.qty,
                        unit_cost=planned.unit_cost,
                        order_code=order.code,
                        moved_at=moved_at,
                        actor_id=actor_id,
                    )
                )

            previous_state = order.status
            order.status = _STATE_BY_FULFILLMENT.get(plan.fulfillment, order.status)
            if invoice_ref:
                order.invoice_ref = invoice_ref
            # Always touch the order so its version moves with every receipt.
            order.last_received_at = moved_at
            order.updated_by_id = actor_id

            try:
                self._session.flush()
            except StaleDataError as exc:
                raise ConcurrencyConflictError("purchase_order", order_id) from exc

            job_id = order.requisition.job_ref if order.requisition else None
            if job_id:
                event = self._outbox.enqueue_job_costs_stale(job_id, source_ref=order.code)
                enqueued.append(event.id)

            logger.info(
                "receipt_posted",
                extra={
                    "order_id": str(order.id),
                    "code": order.code,
                    "from_state": previous_state,
                    "to_state": order.status,
                    "movement_count": len(movements),
                    "pending_after": str(plan.pending_after),
                    "job_id": job_id,
                },
            )
            return OperationResult.ok(
                order_id=order.id,
                code=order.code,
                new_state=order.status,
                movement_count=len(movements),
                movement_ids=[m.id for m in movements],
            )

        result = run_operation(
            self._session,
            operation="receive_order",
            failure_message="Could not register the goods receipt",
            work=work,
            actor_id=actor_id,
            context={"order_id": str(order_id)},
        )
        if result.is_success and enqueued:
            self._dispatch_after_commit(enqueued)
        return result

    def _dispatch_after_commit(self, event_ids: list[UUID]) -> None:
        try:
            self._outbox.dispatch(event_ids)
        except SQLAlchemyError:
            self._session.rollback()
            logger.warning(
                "outbox_dispatch_deferred",
                exc_info=True,
                extra={"event_ids": [str(e) for e in event_ids]},
            )
