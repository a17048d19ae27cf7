"""
Purchasing Module Service (``shopfloor_modules.purchasing.service``).

Responsibility
--------------
Orchestrates the requisition and order side of procurement: requisition
creation with sequential codes, estimated cost edits, the approval state
machine, the code backfill, and purchase order creation against a
requisition's pending quantities.  Pure computation is delegated to
``shopfloor_engines.allocation``.

Architecture position
---------------------
**Modules layer** -- ``RequisitionLedger`` and ``OrderLedger`` are the sole
public entry points for purchasing writes.  They compose the kernel retry
combinator, the allocation engine and the collaborator ports from
``shopfloor_services.collaborators``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` on failure or exception) through ``run_operation``.
* Requisition codes are unique: candidates are inserted inside SAVEPOINTs and
  retried at most ``max_code_attempts`` times.
* ``total_estimated`` is recomputed from the full line set in the same
  transaction as any line edit.
* Order lines never exceed requisition pending quantities (AllocationEngine,
  with the requisition row locked FOR UPDATE while allocating).

Failure modes
-------------
* Business-rule failure  -> ``OperationResult`` whose status is the
  ``ShopfloorError.code``; session rolled back.
* Database failure  -> ``INFRASTRUCTURE_ERROR`` with a generic message.
* ``AuthorizationError`` and unexpected exceptions  -> rolled back, re-raised.

Usage::

    ledger = RequisitionLedger(session, guard, settings=settings, clock=clock)
    result = ledger.create_requisition(
        requester_id=user_id,
        lines=[RequisitionLineInput("BOLT-M8", Decimal("100"), Decimal("0.25"))],
    )
    result.data["code"]   # "SC-2025-0001"
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from shopfloor_config import PurchasingSettings, get_settings
from shopfloor_engines.allocation import AllocationEngine, CoverageCandidate, DesiredLine
from shopfloor_kernel.db.types import ZERO
from shopfloor_kernel.domain.clock import Clock, SystemClock
from shopfloor_kernel.domain.results import OperationResult
from shopfloor_kernel.exceptions import (
    DuplicateOrderCodeError,
    InvalidReferenceError,
    JobNotFoundError,
    ProviderNotFoundError,
    RequisitionLockedError,
    RequisitionNotApprovedError,
    RequisitionNotFoundError,
    TransitionNotAllowedError,
    ValidationError,
)
from shopfloor_kernel.logging_config import get_logger
from shopfloor_kernel.services.retry import Attempt, retry_bounded, try_flush
from shopfloor_modules._operation_helpers import (
    parse_decimal,
    parse_optional_decimal,
    run_operation,
)
from shopfloor_modules.inventory.selectors import MovementSelector
from shopfloor_modules.purchasing.models import (
    CostEdit,
    OrderLineInput,
    OrderStatus,
    RequisitionLineInput,
    RequisitionStatus,
)
from shopfloor_modules.purchasing.orm import (
    ProviderModel,
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    PurchaseRequisitionModel,
    RequisitionLineModel,
)
from shopfloor_modules.purchasing.selectors import PurchasingSelector
from shopfloor_modules.purchasing.workflows import (
    COST_EDITABLE_STATES,
    REQUISITION_WORKFLOW,
)
from shopfloor_services.collaborators import (
    CurrencyCatalog,
    JobDirectory,
    PurchasesGuard,
    RegistryCurrencyCatalog,
    resolve_currency,
)

logger = get_logger("modules.purchasing.service")


def _check_note(note: str | None, settings: PurchasingSettings) -> str | None:
    if note is None:
        return None
    if len(note) > settings.max_note_length:
        raise ValidationError(
            "note", f"longer than {settings.max_note_length} characters"
        )
    return note


def _require_products(session: Session, skus: Sequence[str]) -> None:
    missing = sorted(set(skus) - MovementSelector(session).existing_skus(skus))
    if missing:
        raise InvalidReferenceError(f"unknown product {', '.join(missing)}")


# =============================================================================
# RequisitionLedger
# =============================================================================


class RequisitionLedger:
    """
    Writes purchase requisitions (SC).

    Contract:
        Every public method returns an ``OperationResult``.  The permission
        guard runs first and its ``AuthorizationError`` propagates.

    Guarantees:
        - New requisitions start in ``PENDING_ADMIN``.
        - A code, when assigned, is ``<prefix>-<year>-<seq>`` and unique.
        - When every code candidate collides the requisition is still
          created, without a code, and a warning is logged; ``backfill_codes``
          repairs it later.

    Non-goals:
        - Does not create orders (see ``OrderLedger``).
    """

    def __init__(
        self,
        session: Session,
        guard: PurchasesGuard,
        settings: PurchasingSettings | None = None,
        currency_catalog: CurrencyCatalog | None = None,
        job_directory: JobDirectory | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._guard = guard
        self._settings = settings or get_settings()
        self._catalog = currency_catalog or RegistryCurrencyCatalog(
            self._settings.active_currencies
        )
        self._jobs = job_directory
        self._clock = clock or SystemClock()
        self._selector = PurchasingSelector(session)

    # =========================================================================
    # Code assignment
    # =========================================================================

    def _max_sequence(self, year: int) -> int:
        """Highest numeric suffix among this year's codes (0 when none)."""
        prefix = self._settings.requisition_code_prefix_for(year)
        codes = self._session.execute(
            select(PurchaseRequisitionModel.code)
            .where(PurchaseRequisitionModel.code.like(f"{prefix}%"))
        ).scalars()
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        highest = 0
        for code in codes:
            match = pattern.match(code)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def _code_exists(self, code: str) -> bool:
        return self._session.execute(
            select(PurchaseRequisitionModel.id)
            .where(PurchaseRequisitionModel.code == code)
        ).first() is not None

    # =========================================================================
    # Create
    # =========================================================================

    def create_requisition(
        self,
        requester_id: UUID,
        lines: Sequence[RequisitionLineInput],
        *,
        job_ref: str | None = None,
        currency: str | None = None,
        note: str | None = None,
        actor_id: UUID | None = None,
    ) -> OperationResult:
        """
        Create a requisition in ``PENDING_ADMIN``.

        Returns:
            OK with ``data = {"id", "code"}``; ``code`` is None on the
            degraded path.
        """
        self._guard.assert_can_write_purchases()
        actor = actor_id or requester_id

        def work() -> OperationResult:
            if not lines:
                raise ValidationError("lines", "at least one line is required")
            parsed = []
            for index, line in enumerate(lines, start=1):
                qty = parse_decimal(line.qty, f"lines[{index}].qty")
                if qty <= ZERO:
                    raise ValidationError(f"lines[{index}].qty", "must be positive")
                cost = parse_optional_decimal(
                    line.estimated_unit_cost, f"lines[{index}].estimated_unit_cost"
                )
                if cost is not None and cost < ZERO:
                    raise ValidationError(
                        f"lines[{index}].estimated_unit_cost", "cannot be negative"
                    )
                parsed.append((line.product_sku, qty, cost))
            _check_note(note, self._settings)
            _require_products(self._session, [sku for sku, _, _ in parsed])

            job_id = job_ref
            if job_ref and self._jobs is not None:
                job_id = self._jobs.resolve(job_ref)
                if job_id is None:
                    raise JobNotFoundError(job_ref)

            resolved_currency = resolve_currency(
                self._catalog, currency, default=self._settings.default_currency
            )
            requested_at = self._clock.now()
            year = requested_at.year

            def build(code: str | None) -> PurchaseRequisitionModel:
                requisition = PurchaseRequisitionModel(
                    code=code,
                    requester_id=requester_id,
                    requested_at=requested_at,
                    job_ref=job_id,
                    currency=resolved_currency,
                    note=note,
                    status=RequisitionStatus.PENDING_ADMIN.value,
                    created_by_id=actor,
                    lines=[
                        RequisitionLineModel(
                            line_number=number,
                            product_sku=sku,
                            requested_qty=qty,
                            estimated_unit_cost=cost,
                            created_by_id=actor,
                        )
                        for number, (sku, qty, cost) in enumerate(parsed, start=1)
                    ],
                )
                requisition.recompute_total()
                return requisition

            base = self._max_sequence(year)

            def attempt(number: int) -> Attempt[PurchaseRequisitionModel]:
                code = self._settings.requisition_code(year, base + number)
                requisition = build(code)
                error = try_flush(self._session, requisition)
                if error is None:
                    return Attempt.created(requisition)
                if self._code_exists(code):
                    return Attempt.conflicted()
                raise error

            outcome = retry_bounded(
                attempt,
                self._settings.max_code_attempts,
                operation="requisition_code",
            )
            requisition = outcome.value
            if outcome.exhausted:
                requisition = build(None)
                self._session.add(requisition)
                self._session.flush()
                logger.warning(
                    "requisition_created_without_code",
                    extra={
                        "requisition_id": str(requisition.id),
                        "year": year,
                        "attempts": outcome.attempts,
                    },
                )

            logger.info(
                "requisition_created",
                extra={
                    "requisition_id": str(requisition.id),
                    "code": requisition.code,
                    "line_count": len(parsed),
                    "currency": resolved_currency,
                    "total_estimated": str(requisition.total_estimated),
                },
            )
            return OperationResult.ok(id=requisition.id, code=requisition.code)

        return run_operation(
            self._session,
            operation="create_requisition",
            failure_message="Could not create the requisition",
            work=work,
            actor_id=actor,
            context={"requester_id": str(requester_id)},
        )

    # =========================================================================
    # Cost edits
    # =========================================================================

    def update_requisition_costs(
        self,
        requisition_id: UUID,
        edits: Sequence[CostEdit],
        *,
        actor_id: UUID,
    ) -> OperationResult:
        """
        Set or clear estimated unit costs and recompute the total.

        Allowed in ``PENDING_ADMIN``/``PENDING_GERENCIA``, and in ``APPROVED``
        while no order has been created from the requisition.
        """
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            requisition = self._session.get(
                PurchaseRequisitionModel, requisition_id, with_for_update=True
            )
            if requisition is None:
                raise RequisitionNotFoundError(requisition_id)

            if requisition.status not in COST_EDITABLE_STATES:
                order_count = self._selector.order_count(requisition.id)
                if requisition.status != RequisitionStatus.APPROVED.value or order_count:
                    raise RequisitionLockedError(
                        requisition.id, requisition.status, order_count
                    )

            by_id = {line.id: line for line in requisition.lines}
            for edit in edits:
                line = by_id.get(edit.line_id)
                if line is None:
                    raise ValidationError(
                        "lines",
                        f"line {edit.line_id} does not belong to requisition "
                        f"{requisition.id}",
                    )
                cost = parse_optional_decimal(
                    edit.estimated_unit_cost, "estimated_unit_cost"
                )
                if cost is not None and cost < ZERO:
                    raise ValidationError("estimated_unit_cost", "cannot be negative")
                line.estimated_unit_cost = cost
                line.updated_by_id = actor_id

            total = requisition.recompute_total()
            requisition.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "requisition_costs_updated",
                extra={
                    "requisition_id": str(requisition.id),
                    "edited_lines": len(edits),
                    "total_estimated": str(total),
                },
            )
            return OperationResult.ok(id=requisition.id, total_estimated=total)

        return run_operation(
            self._session,
            operation="update_requisition_costs",
            failure_message="Could not update the requisition costs",
            work=work,
            actor_id=actor_id,
            context={"requisition_id": str(requisition_id)},
        )

    # =========================================================================
    # State machine
    # =========================================================================

    def set_requisition_state(
        self,
        requisition_id: UUID,
        next_state: RequisitionStatus | str,
        *,
        actor_id: UUID,
        note: str | None = None,
    ) -> OperationResult:
        """
        Move a requisition along ``REQUISITION_WORKFLOW``.

        Same-state requests succeed with ``NO_CHANGE`` and write nothing.
        A supplied note overwrites the requisition note.
        """
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            try:
                target = RequisitionStatus(next_state)
            except ValueError:
                raise ValidationError("state", f"unknown state {next_state!r}") from None
            _check_note(note, self._settings)

            requisition = self._session.get(
                PurchaseRequisitionModel, requisition_id, with_for_update=True
            )
            if requisition is None:
                raise RequisitionNotFoundError(requisition_id)

            current = requisition.status
            if current == target.value:
                return OperationResult.no_change(
                    f"Requisition already {current}",
                    id=requisition.id,
                    state=current,
                )
            if not REQUISITION_WORKFLOW.allows(current, target.value):
                raise TransitionNotAllowedError(current, target.value)

            requisition.status = target.value
            if note is not None:
                requisition.note = note
            requisition.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "requisition_state_changed",
                extra={
                    "requisition_id": str(requisition.id),
                    "code": requisition.code,
                    "from_state": current,
                    "to_state": target.value,
                },
            )
            return OperationResult.ok(id=requisition.id, state=target.value)

        return run_operation(
            self._session,
            operation="set_requisition_state",
            failure_message="Could not change the requisition state",
            work=work,
            actor_id=actor_id,
            context={"requisition_id": str(requisition_id)},
        )

    # =========================================================================
    # Backfill
    # =========================================================================

    def backfill_codes(self, *, actor_id: UUID) -> OperationResult:
        """
        Assign codes to requisitions created without one.

        Requisitions are grouped by the year of ``requested_at`` and coded in
        creation order, continuing from that year's highest sequence.

        Returns:
            OK with ``data = {"assigned_count", "unassigned_count"}``.
        """
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            pending = self._session.execute(
                select(PurchaseRequisitionModel)
                .where(PurchaseRequisitionModel.code.is_(None))
                .order_by(
                    PurchaseRequisitionModel.requested_at,
                    PurchaseRequisitionModel.created_at,
                    PurchaseRequisitionModel.id,
                )
            ).scalars().all()
            if not pending:
                return OperationResult.no_change(
                    "No requisitions without code", assigned_count=0, unassigned_count=0
                )

            next_by_year: dict[int, int] = {}
            assigned = unassigned = 0
            for requisition in pending:
                year = requisition.requested_at.year
                if year not in next_by_year:
                    next_by_year[year] = self._max_sequence(year)

                def attempt(number: int, requisition=requisition, year=year):
                    sequence = next_by_year[year] + number
                    code = self._settings.requisition_code(year, sequence)
                    requisition.code = code
                    requisition.updated_by_id = actor_id
                    error = try_flush(self._session, requisition)
                    if error is None:
                        next_by_year[year] = sequence
                        return Attempt.created(code)
                    if self._code_exists(code):
                        return Attempt.conflicted()
                    raise error

                outcome = retry_bounded(
                    attempt,
                    self._settings.max_code_attempts,
                    operation="requisition_code_backfill",
                )
                if outcome.exhausted:
                    unassigned += 1
                    continue
                assigned += 1
                logger.info(
                    "requisition_code_backfilled",
                    extra={"requisition_id": str(requisition.id), "code": outcome.value},
                )

            logger.info(
                "requisition_code_backfill_completed",
                extra={"assigned_count": assigned, "unassigned_count": unassigned},
            )
            return OperationResult.ok(
                assigned_count=assigned, unassigned_count=unassigned
            )

        return run_operation(
            self._session,
            operation="backfill_requisition_codes",
            failure_message="Could not backfill requisition codes",
            work=work,
            actor_id=actor_id,
        )


# =============================================================================
# OrderLedger
# =============================================================================


class OrderLedger:
    """
    Creates purchase orders (OC) from approved requisitions.

    Contract:
        ``create_order`` either persists the whole order, one line per
        allocation split, or nothing.

    Guarantees:
        - Every order line carries the requisition line it covers.
        - ``total == sum(line.qty * line.unit_cost)``.
        - Duplicate codes are reported as ``DUPLICATE_ORDER_CODE``, other
          integrity failures as ``INVALID_REFERENCE``.
    """

    def __init__(
        self,
        session: Session,
        guard: PurchasesGuard,
        settings: PurchasingSettings | None = None,
        currency_catalog: CurrencyCatalog | None = None,
        allocation_engine: AllocationEngine | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._guard = guard
        self._settings = settings or get_settings()
        self._catalog = currency_catalog or RegistryCurrencyCatalog(
            self._settings.active_currencies
        )
        self._engine = allocation_engine or AllocationEngine()
        self._clock = clock or SystemClock()
        self._selector = PurchasingSelector(session)

    def _order_code_exists(self, code: str) -> bool:
        return self._session.execute(
            select(PurchaseOrderModel.id).where(PurchaseOrderModel.code == code)
        ).first() is not None

    def create_order(
        self,
        requisition_id: UUID,
        provider_id: UUID,
        code: str,
        lines: Sequence[OrderLineInput],
        *,
        actor_id: UUID,
        currency: str | None = None,
    ) -> OperationResult:
        """
        Create an ``OPEN`` order covering part of a requisition.

        Returns:
            OK with ``data = {"id", "code", "total", "line_count"}``.
        """
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            order_code = (code or "").strip()
            if len(order_code) < self._settings.min_order_code_length:
                raise ValidationError(
                    "code",
                    f"must be at least {self._settings.min_order_code_length} characters",
                )
            if not lines:
                raise ValidationError("lines", "at least one line is required")
            desired = []
            for index, line in enumerate(lines, start=1):
                qty = parse_decimal(line.qty, f"lines[{index}].qty")
                unit_cost = parse_decimal(line.unit_cost, f"lines[{index}].unit_cost")
                if qty <= ZERO:
                    raise ValidationError(f"lines[{index}].qty", "must be positive")
                if unit_cost < ZERO:
                    raise ValidationError(f"lines[{index}].unit_cost", "cannot be negative")
                desired.append(DesiredLine(line.product_sku, qty, unit_cost))

            requisition = self._session.get(
                PurchaseRequisitionModel, requisition_id, with_for_update=True
            )
            if requisition is None:
                raise RequisitionNotFoundError(requisition_id)
            if requisition.status != RequisitionStatus.APPROVED.value:
                raise RequisitionNotApprovedError(requisition.id, requisition.status)

            provider = self._session.get(ProviderModel, provider_id)
            if provider is None:
                raise ProviderNotFoundError(provider_id)
            _require_products(self._session, [d.product_sku for d in desired])

            covered = self._selector.covered_by_line(
                line.id for line in requisition.lines
            )
            candidates = [
                CoverageCandidate(
                    line_id=str(line.id),
                    product_sku=line.product_sku,
                    line_number=line.line_number,
                    requested_qty=line.requested_qty,
                    consumed_qty=covered.get(line.id, ZERO),
                )
                for line in requisition.lines
            ]
            plan = self._engine.allocate(candidates=candidates, desired=desired)

            resolved_currency = resolve_currency(
                self._catalog,
                currency,
                provider.preferred_currency,
                default=self._settings.default_currency,
            )
            order = PurchaseOrderModel(
                code=order_code,
                requisition_id=requisition.id,
                provider_id=provider.id,
                currency=resolved_currency,
                total=plan.total,
                status=OrderStatus.OPEN.value,
                created_by_id=actor_id,
                lines=[
                    PurchaseOrderLineModel(
                        line_number=number,
                        product_sku=split.product_sku,
                        qty=split.qty,
                        unit_cost=split.unit_cost,
                        coverage_line_id=UUID(split.coverage_line_id),
                        created_by_id=actor_id,
                    )
                    for number, split in enumerate(plan.splits, start=1)
                ],
            )
            error = try_flush(self._session, order)
            if error is not None:
                if self._order_code_exists(order_code):
                    raise DuplicateOrderCodeError(order_code)
                logger.warning(
                    "order_integrity_failure",
                    extra={"code": order_code, "requisition_id": str(requisition.id)},
                )
                raise InvalidReferenceError("provider or product")

            logger.info(
                "order_created",
                extra={
                    "order_id": str(order.id),
                    "code": order.code,
                    "requisition_id": str(requisition.id),
                    "provider_id": str(provider.id),
                    "line_count": len(plan.splits),
                    "total": str(plan.total),
                    "currency": resolved_currency,
                },
            )
            return OperationResult.ok(
                id=order.id,
                code=order.code,
                total=plan.total,
                line_count=len(plan.splits),
            )

        return run_operation(
            self._session,
            operation="create_order",
            failure_message="Could not create the purchase order",
            work=work,
            actor_id=actor_id,
            context={"requisition_id": str(requisition_id), "code": code},
        )
