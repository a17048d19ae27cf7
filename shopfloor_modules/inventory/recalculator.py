"""
CostRecalculator -- batch rebuild of every product's moving-average cost.

Walks all products, reweighs each one's most recent purchase receipts with
the same formula the receiving path uses, and writes the result back for
every product that has receipts, so stored costs carrying stray digits or an
old formula are repaired.  Products without receipts are skipped and keep
their stored cost.

Every written product counts in ``updated_count``; those whose stored value
already equalled the result are also counted in ``unchanged_count``.  A
second run without new movements therefore reports every written product as
unchanged.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from shopfloor_config import PurchasingSettings, get_settings
from shopfloor_engines.costing import weighted_average_cost
from shopfloor_kernel.domain.results import OperationResult
from shopfloor_kernel.logging_config import get_logger
from shopfloor_modules._operation_helpers import run_operation
from shopfloor_modules.inventory.models import RecalculationSummary
from shopfloor_modules.inventory.orm import ProductModel
from shopfloor_modules.inventory.selectors import MovementSelector

logger = get_logger("modules.inventory.recalculator")


class CostRecalculator:
    """
    Recomputes product costs from the movement ledger.

    Non-goals:
        - No permission guard: this is an operator maintenance task run
          from ``scripts/recalculate_costs.py``.
    """

    def __init__(self, session: Session, settings: PurchasingSettings | None = None):
        self._session = session
        self._settings = settings or get_settings()
        self._movements = MovementSelector(session)

    def recalculate_all_product_costs(
        self,
        *,
        actor_id: UUID,
        dry_run: bool = False,
    ) -> OperationResult:
        """
        Recompute and store every product's cost.

        Args:
            actor_id: Recorded as ``updated_by_id`` on written products.
            dry_run: Compute and report, then roll back.

        Returns:
            OK with ``data = {"updated_count", "skipped_count",
            "unchanged_count"}``.
        """

        def work() -> OperationResult:
            updated = skipped = unchanged = 0
            products = self._session.execute(
                select(ProductModel).order_by(ProductModel.sku)
            ).scalars().all()

            for product in products:
                history = self._movements.recent_receipt_samples(
                    product.sku, self._settings.cost_window
                )
                new_cost = weighted_average_cost(
                    history=history,
                    window=self._settings.cost_window,
                    decimal_places=self._settings.cost_decimal_places,
                )
                if new_cost is None:
                    skipped += 1
                    continue
                if new_cost == product.unit_cost:
                    unchanged += 1
                else:
                    logger.info(
                        "product_cost_recalculated",
                        extra={
                            "product_sku": product.sku,
                            "old_cost": str(product.unit_cost),
                            "new_cost": str(new_cost),
                        },
                    )
                product.unit_cost = new_cost
                product.updated_by_id = actor_id
                updated += 1

            self._session.flush()
            summary = RecalculationSummary(
                updated_count=updated,
                skipped_count=skipped,
                unchanged_count=unchanged,
            )
            logger.info(
                "product_costs_recalculated",
                extra={
                    "updated_count": updated,
                    "skipped_count": skipped,
                    "unchanged_count": unchanged,
                    "dry_run": dry_run,
                },
            )
            data = {
                "updated_count": summary.updated_count,
                "skipped_count": summary.skipped_count,
                "unchanged_count": summary.unchanged_count,
            }
            if dry_run:
                self._session.rollback()
                return OperationResult.no_change("Dry run, nothing written", **data)
            return OperationResult.ok(**data)

        return run_operation(
            self._session,
            operation="recalculate_product_costs",
            failure_message="Could not recalculate product costs",
            work=work,
            actor_id=actor_id,
        )
