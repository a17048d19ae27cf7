"""
Shared fixtures for module tests.

Provides parent entities (products, a provider) and wired ledgers.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which parent entities it depends on in its function signature.
"""

from decimal import Decimal
from uuid import UUID

import pytest

from shopfloor_modules.inventory.orm import ProductModel
from shopfloor_modules.inventory.recalculator import CostRecalculator
from shopfloor_modules.inventory.service import ReceivingProcessor
from shopfloor_modules.purchasing.models import (
    OrderLineInput,
    RequisitionLineInput,
    RequisitionStatus,
)
from shopfloor_modules.purchasing.orm import ProviderModel
from shopfloor_modules.purchasing.providers import ProviderRegistry
from shopfloor_modules.purchasing.selectors import PurchasingSelector
from shopfloor_modules.purchasing.service import OrderLedger, RequisitionLedger
from shopfloor_services.collaborators import AllowAllGuard

# ---------------------------------------------------------------------------
# Deterministic ids
# ---------------------------------------------------------------------------

TEST_REQUESTER_ID = UUID("00000000-0000-4000-a000-000000000001")
TEST_PROVIDER_ID = UUID("00000000-0000-4000-a000-000000000002")

BOLT = "BOLT-M8"
NUT = "NUT-M8"
WASHER = "WASHER-M8"


class RecordingJobCostHook:
    """JobCostHook that records calls and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.calls: list[str] = []
        self.fail = fail

    def recompute_linked_job_costs(self, job_id: str) -> None:
        self.calls.append(job_id)
        if self.fail:
            raise RuntimeError("job costing unavailable")


# ---------------------------------------------------------------------------
# Parent entities
# ---------------------------------------------------------------------------


@pytest.fixture
def products(session, test_actor_id):
    """Three products with zero cost."""
    models = [
        ProductModel(sku=sku, name=name, unit_cost=Decimal("0"), created_by_id=test_actor_id)
        for sku, name in ((BOLT, "Hex bolt M8"), (NUT, "Hex nut M8"), (WASHER, "Washer M8"))
    ]
    session.add_all(models)
    # Commit so a rolled-back operation in the test keeps its parents.
    session.commit()
    return {m.sku: m for m in models}


@pytest.fixture
def provider(session, test_actor_id):
    model = ProviderModel(
        id=TEST_PROVIDER_ID,
        name="Ferreteria Central",
        tax_id="20123456789",
        preferred_currency="USD",
        created_by_id=test_actor_id,
    )
    session.add(model)
    session.commit()
    return model


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def guard():
    return AllowAllGuard()


@pytest.fixture
def requisition_ledger(session, guard, purchasing_settings, deterministic_clock):
    return RequisitionLedger(
        session, guard, settings=purchasing_settings, clock=deterministic_clock,
    )


@pytest.fixture
def order_ledger(session, guard, purchasing_settings, deterministic_clock):
    return OrderLedger(
        session, guard, settings=purchasing_settings, clock=deterministic_clock,
    )


@pytest.fixture
def job_cost_hook():
    return RecordingJobCostHook()


@pytest.fixture
def receiving_processor(session, guard, purchasing_settings, deterministic_clock, job_cost_hook):
    return ReceivingProcessor(
        session,
        guard,
        settings=purchasing_settings,
        job_cost_hook=job_cost_hook,
        clock=deterministic_clock,
    )


@pytest.fixture
def cost_recalculator(session, purchasing_settings):
    return CostRecalculator(session, settings=purchasing_settings)


@pytest.fixture
def provider_registry(session, guard, purchasing_settings):
    return ProviderRegistry(session, guard, settings=purchasing_settings)


@pytest.fixture
def purchasing_selector(session):
    return PurchasingSelector(session)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@pytest.fixture
def approved_requisition(requisition_ledger, products, test_actor_id):
    """
    Factory: create a requisition and walk it to APPROVED.

    Default lines: BOLT-M8 60 and BOLT-M8 40 (line numbers 1 and 2).
    Returns the requisition id.
    """

    def _create(lines=None, job_ref=None):
        lines = lines or [
            RequisitionLineInput(BOLT, Decimal("60"), Decimal("0.25")),
            RequisitionLineInput(BOLT, Decimal("40"), Decimal("0.25")),
        ]
        result = requisition_ledger.create_requisition(
            TEST_REQUESTER_ID, lines, job_ref=job_ref,
        )
        assert result.is_success, result.message
        requisition_id = result.data["id"]
        for state in (RequisitionStatus.PENDING_GERENCIA, RequisitionStatus.APPROVED):
            moved = requisition_ledger.set_requisition_state(
                requisition_id, state, actor_id=test_actor_id,
            )
            assert moved.is_success, moved.message
        return requisition_id

    return _create


@pytest.fixture
def open_order(approved_requisition, order_ledger, provider, test_actor_id):
    """
    Factory: an OPEN order for ``qty`` of BOLT-M8 at ``unit_cost``.

    Returns the order id.
    """

    def _create(code="OC-0001", qty="100", unit_cost="0.25", job_ref=None):
        requisition_id = approved_requisition(job_ref=job_ref)
        result = order_ledger.create_order(
            requisition_id,
            provider.id,
            code,
            [OrderLineInput(BOLT, Decimal(qty), Decimal(unit_cost))],
            actor_id=test_actor_id,
        )
        assert result.is_success, result.message
        return result.data["id"]

    return _create
