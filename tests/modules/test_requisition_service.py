"""
Tests for RequisitionLedger.

Covers:
- Creation with sequential SC-<year>-<seq> codes
- Bounded code retry and the code-less degraded path
- Code backfill
- Input validation, currency fallback, job resolution
- Estimated cost edits and the edit lock
- The approval state machine
- Error mapping (business, infrastructure, authorization)
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from shopfloor_kernel.exceptions import AuthorizationError
from shopfloor_modules.purchasing.models import (
    CostEdit,
    RequisitionLineInput,
    RequisitionStatus,
)
from shopfloor_modules.purchasing.service import RequisitionLedger
from shopfloor_services.collaborators import DenyAllGuard, StaticJobDirectory
from tests.modules.conftest import BOLT, NUT, TEST_REQUESTER_ID

S = RequisitionStatus

DEFAULT_LINES = [
    RequisitionLineInput(BOLT, Decimal("60"), Decimal("0.25")),
    RequisitionLineInput(BOLT, Decimal("40"), Decimal("0.25")),
]


def _create(ledger, lines=None, **kwargs):
    return ledger.create_requisition(TEST_REQUESTER_ID, lines or DEFAULT_LINES, **kwargs)


# =============================================================================
# Creation and codes
# =============================================================================


class TestCreateRequisition:

    def test_first_code_of_the_year(self, requisition_ledger, purchasing_selector, products):
        result = _create(requisition_ledger)

        assert result.is_success
        assert result.data["code"] == "SC-2025-0001"
        requisition = purchasing_selector.get_requisition(result.data["id"])
        assert requisition.status == S.PENDING_ADMIN
        assert requisition.total_estimated == Decimal("25")
        assert [l.line_number for l in requisition.lines] == [1, 2]

    def test_codes_are_sequential(self, requisition_ledger, products):
        codes = [_create(requisition_ledger).data["code"] for _ in range(3)]

        assert codes == ["SC-2025-0001", "SC-2025-0002", "SC-2025-0003"]

    def test_sequence_restarts_each_year(self, requisition_ledger, products, deterministic_clock):
        _create(requisition_ledger)
        deterministic_clock.set_time(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))

        result = _create(requisition_ledger)

        assert result.data["code"] == "SC-2026-0001"

    def test_missing_cost_counts_as_zero(self, requisition_ledger, purchasing_selector, products):
        result = _create(
            requisition_ledger,
            [
                RequisitionLineInput(BOLT, Decimal("10"), None),
                RequisitionLineInput(NUT, Decimal("4"), Decimal("1.50")),
            ],
        )

        requisition = purchasing_selector.get_requisition(result.data["id"])
        assert requisition.total_estimated == Decimal("6")

    def test_requester_recorded(self, requisition_ledger, purchasing_selector, products):
        result = _create(requisition_ledger)

        requisition = purchasing_selector.get_requisition(result.data["id"])
        assert requisition.requester_id == TEST_REQUESTER_ID

    def test_logs_creation(self, requisition_ledger, products, captured_logs):
        _create(requisition_ledger)

        created = [r for r in captured_logs() if r["message"] == "requisition_created"]
        assert created and created[0]["code"] == "SC-2025-0001"


class TestCodeCollisions:

    def test_retries_past_taken_codes(self, requisition_ledger, products, monkeypatch, captured_logs):
        _create(requisition_ledger)
        _create(requisition_ledger)
        # A stale max forces the first two candidates to collide.
        monkeypatch.setattr(requisition_ledger, "_max_sequence", lambda year: 0)

        result = _create(requisition_ledger)

        assert result.is_success
        assert result.data["code"] == "SC-2025-0003"
        conflicts = [r for r in captured_logs() if r["message"] == "retry_attempt_conflict"]
        assert [r["attempt"] for r in conflicts] == [1, 2]

    def test_created_without_code_after_five_collisions(
        self, requisition_ledger, purchasing_selector, products, monkeypatch, captured_logs,
    ):
        for _ in range(5):
            _create(requisition_ledger)
        monkeypatch.setattr(requisition_ledger, "_max_sequence", lambda year: 0)

        result = _create(requisition_ledger)

        assert result.is_success
        assert result.data["code"] is None
        requisition = purchasing_selector.get_requisition(result.data["id"])
        assert requisition.status == S.PENDING_ADMIN
        warnings = [
            r for r in captured_logs()
            if r["message"] == "requisition_created_without_code"
        ]
        assert warnings and warnings[0]["level"] == "WARNING"

    def test_attempt_limit_is_configurable(self, session, guard, products, deterministic_clock, monkeypatch):
        from shopfloor_config import PurchasingSettings

        ledger = RequisitionLedger(
            session, guard,
            settings=PurchasingSettings(max_code_attempts=1),
            clock=deterministic_clock,
        )
        _create(ledger)
        monkeypatch.setattr(ledger, "_max_sequence", lambda year: 0)

        assert _create(ledger).data["code"] is None


class TestBackfillCodes:

    def test_assigns_codes_in_creation_order(
        self, requisition_ledger, purchasing_selector, products, monkeypatch,
        deterministic_clock, test_actor_id,
    ):
        for _ in range(5):
            _create(requisition_ledger)
        with monkeypatch.context() as patch:
            patch.setattr(requisition_ledger, "_max_sequence", lambda year: 0)
            deterministic_clock.advance(60)
            first = _create(requisition_ledger).data["id"]
            deterministic_clock.advance(60)
            second = _create(requisition_ledger).data["id"]

        result = requisition_ledger.backfill_codes(actor_id=test_actor_id)

        assert result.is_success
        assert result.data == {"assigned_count": 2, "unassigned_count": 0}
        assert purchasing_selector.get_requisition(first).code == "SC-2025-0006"
        assert purchasing_selector.get_requisition(second).code == "SC-2025-0007"

    def test_groups_by_request_year(
        self, session, guard, requisition_ledger, purchasing_selector, products,
        deterministic_clock, test_actor_id,
    ):
        from shopfloor_config import PurchasingSettings

        # One attempt and a stale max: every new requisition collides.
        colliding = RequisitionLedger(
            session, guard,
            settings=PurchasingSettings(max_code_attempts=1),
            clock=deterministic_clock,
        )
        colliding._max_sequence = lambda year: 0

        _create(requisition_ledger)
        uncoded_2025 = _create(colliding).data
        deterministic_clock.set_time(datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc))
        _create(requisition_ledger)
        uncoded_2026 = _create(colliding).data
        assert uncoded_2025["code"] is None and uncoded_2026["code"] is None

        result = requisition_ledger.backfill_codes(actor_id=test_actor_id)

        assert result.data == {"assigned_count": 2, "unassigned_count": 0}
        assert purchasing_selector.get_requisition(uncoded_2025["id"]).code == "SC-2025-0002"
        assert purchasing_selector.get_requisition(uncoded_2026["id"]).code == "SC-2026-0002"

    def test_nothing_to_backfill(self, requisition_ledger, products, test_actor_id):
        _create(requisition_ledger)

        result = requisition_ledger.backfill_codes(actor_id=test_actor_id)

        assert result.is_success
        assert result.status == "NO_CHANGE"


# =============================================================================
# Validation and collaborators
# =============================================================================


class TestCreateValidation:

    def test_lines_required(self, requisition_ledger, products):
        result = requisition_ledger.create_requisition(TEST_REQUESTER_ID, [])

        assert result.status == "VALIDATION_ERROR"
        assert "lines" in result.message

    @pytest.mark.parametrize("qty", ["0", "-1"])
    def test_quantity_must_be_positive(self, requisition_ledger, products, qty):
        result = _create(requisition_ledger, [RequisitionLineInput(BOLT, Decimal(qty))])

        assert result.status == "VALIDATION_ERROR"

    def test_quantity_must_be_a_number(self, requisition_ledger, products):
        result = _create(requisition_ledger, [RequisitionLineInput(BOLT, "lots")])

        assert result.status == "VALIDATION_ERROR"

    def test_negative_cost_rejected(self, requisition_ledger, products):
        result = _create(
            requisition_ledger, [RequisitionLineInput(BOLT, Decimal("1"), Decimal("-1"))]
        )

        assert result.status == "VALIDATION_ERROR"

    def test_unknown_product_is_invalid_reference(self, requisition_ledger, products):
        result = _create(requisition_ledger, [RequisitionLineInput("NOPE-1", Decimal("1"))])

        assert result.status == "INVALID_REFERENCE"
        assert "NOPE-1" in result.message

    def test_note_length_limited(self, requisition_ledger, products):
        result = _create(requisition_ledger, note="x" * 501)

        assert result.status == "VALIDATION_ERROR"

    def test_rejection_writes_nothing(self, requisition_ledger, products):
        _create(requisition_ledger, [RequisitionLineInput("NOPE-1", Decimal("1"))])

        assert _create(requisition_ledger).data["code"] == "SC-2025-0001"


class TestCurrencyAndJobs:

    def test_default_currency(self, requisition_ledger, purchasing_selector, products):
        result = _create(requisition_ledger)

        assert purchasing_selector.get_requisition(result.data["id"]).currency == "PEN"

    def test_explicit_currency_normalized(self, requisition_ledger, purchasing_selector, products):
        result = _create(requisition_ledger, currency=" usd ")

        assert purchasing_selector.get_requisition(result.data["id"]).currency == "USD"

    @pytest.mark.parametrize("currency", ["XXX", "GBP", "dollars"])
    def test_unknown_or_inactive_currency_falls_back(
        self, requisition_ledger, purchasing_selector, products, currency,
    ):
        result = _create(requisition_ledger, currency=currency)

        assert result.is_success
        assert purchasing_selector.get_requisition(result.data["id"]).currency == "PEN"

    def test_job_ref_resolved_by_code(self, session, guard, purchasing_settings, deterministic_clock, purchasing_selector, products):
        ledger = RequisitionLedger(
            session, guard,
            settings=purchasing_settings,
            job_directory=StaticJobDirectory({"job-17": "OT-2025-017"}),
            clock=deterministic_clock,
        )

        result = _create(ledger, job_ref="OT-2025-017")

        assert purchasing_selector.get_requisition(result.data["id"]).job_ref == "job-17"

    def test_unknown_job_rejected(self, session, guard, purchasing_settings, deterministic_clock, products):
        ledger = RequisitionLedger(
            session, guard,
            settings=purchasing_settings,
            job_directory=StaticJobDirectory({"job-17": "OT-2025-017"}),
            clock=deterministic_clock,
        )

        result = _create(ledger, job_ref="OT-404")

        assert result.status == "JOB_NOT_FOUND"

    def test_job_ref_kept_without_directory(self, requisition_ledger, purchasing_selector, products):
        result = _create(requisition_ledger, job_ref="job-9")

        assert purchasing_selector.get_requisition(result.data["id"]).job_ref == "job-9"


class TestErrorMapping:

    def test_guard_denial_propagates(self, session, purchasing_settings, deterministic_clock, products):
        ledger = RequisitionLedger(
            session, DenyAllGuard(), settings=purchasing_settings, clock=deterministic_clock,
        )

        with pytest.raises(AuthorizationError):
            _create(ledger)

    def test_database_failure_is_infrastructure_error(
        self, requisition_ledger, products, monkeypatch, captured_logs,
    ):
        def _boom(year):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        monkeypatch.setattr(requisition_ledger, "_max_sequence", _boom)

        result = _create(requisition_ledger)

        assert result.status == "INFRASTRUCTURE_ERROR"
        assert result.message == "Could not create the requisition"
        assert "connection lost" not in result.message
        errors = [
            r for r in captured_logs()
            if r["message"] == "create_requisition_infrastructure_error"
        ]
        assert errors and "traceback" in errors[0]

    def test_unexpected_exception_propagates(self, requisition_ledger, products, monkeypatch):
        def _boom(year):
            raise RuntimeError("bug")

        monkeypatch.setattr(requisition_ledger, "_max_sequence", _boom)

        with pytest.raises(RuntimeError):
            _create(requisition_ledger)


# =============================================================================
# Cost edits
# =============================================================================


class TestUpdateRequisitionCosts:

    def test_edit_recomputes_total(self, requisition_ledger, purchasing_selector, products, test_actor_id):
        requisition_id = _create(requisition_ledger).data["id"]
        lines = purchasing_selector.get_requisition(requisition_id).lines

        result = requisition_ledger.update_requisition_costs(
            requisition_id,
            [CostEdit(lines[0].id, Decimal("0.50"))],
            actor_id=test_actor_id,
        )

        assert result.is_success
        assert result.data["total_estimated"] == Decimal("40")
        assert purchasing_selector.get_requisition(requisition_id).total_estimated == Decimal("40")

    def test_none_clears_cost(self, requisition_ledger, purchasing_selector, products, test_actor_id):
        requisition_id = _create(requisition_ledger).data["id"]
        lines = purchasing_selector.get_requisition(requisition_id).lines

        requisition_ledger.update_requisition_costs(
            requisition_id,
            [CostEdit(lines[1].id, None)],
            actor_id=test_actor_id,
        )

        requisition = purchasing_selector.get_requisition(requisition_id)
        assert requisition.lines[1].estimated_unit_cost is None
        assert requisition.total_estimated == Decimal("15")

    def test_foreign_line_rejected(self, requisition_ledger, purchasing_selector, products, test_actor_id):
        requisition_id = _create(requisition_ledger).data["id"]

        result = requisition_ledger.update_requisition_costs(
            requisition_id,
            [CostEdit(uuid4(), Decimal("1"))],
            actor_id=test_actor_id,
        )

        assert result.status == "VALIDATION_ERROR"
        assert purchasing_selector.get_requisition(requisition_id).total_estimated == Decimal("25")

    def test_negative_cost_rejected(self, requisition_ledger, purchasing_selector, products, test_actor_id):
        requisition_id = _create(requisition_ledger).data["id"]
        lines = purchasing_selector.get_requisition(requisition_id).lines

        result = requisition_ledger.update_requisition_costs(
            requisition_id,
            [CostEdit(lines[0].id, Decimal("-0.01"))],
            actor_id=test_actor_id,
        )

        assert result.status == "VALIDATION_ERROR"

    def test_unknown_requisition(self, requisition_ledger, test_actor_id):
        result = requisition_ledger.update_requisition_costs(
            uuid4(), [], actor_id=test_actor_id,
        )

        assert result.status == "REQUISITION_NOT_FOUND"

    def test_approved_without_orders_is_editable(
        self, approved_requisition, requisition_ledger, purchasing_selector, test_actor_id,
    ):
        requisition_id = approved_requisition()
        lines = purchasing_selector.get_requisition(requisition_id).lines

        result = requisition_ledger.update_requisition_costs(
            requisition_id,
            [CostEdit(lines[0].id, Decimal("1"))],
            actor_id=test_actor_id,
        )

        assert result.is_success

    def test_locked_once_ordered(self, open_order, requisition_ledger, purchasing_selector, test_actor_id):
        order = purchasing_selector.get_order(open_order(qty="10"))
        requisition = purchasing_selector.get_requisition(order.requisition_id)

        result = requisition_ledger.update_requisition_costs(
            requisition.id,
            [CostEdit(requisition.lines[0].id, Decimal("1"))],
            actor_id=test_actor_id,
        )

        assert result.status == "REQUISITION_LOCKED"

    @pytest.mark.parametrize("final_state", [S.REJECTED, S.CANCELLED])
    def test_locked_when_closed(self, requisition_ledger, purchasing_selector, products, test_actor_id, final_state):
        requisition_id = _create(requisition_ledger).data["id"]
        requisition_ledger.set_requisition_state(requisition_id, final_state, actor_id=test_actor_id)
        lines = purchasing_selector.get_requisition(requisition_id).lines

        result = requisition_ledger.update_requisition_costs(
            requisition_id,
            [CostEdit(lines[0].id, Decimal("1"))],
            actor_id=test_actor_id,
        )

        assert result.status == "REQUISITION_LOCKED"


# =============================================================================
# State machine
# =============================================================================

_PATH_TO = {
    S.PENDING_ADMIN: [],
    S.PENDING_GERENCIA: [S.PENDING_GERENCIA],
    S.APPROVED: [S.PENDING_GERENCIA, S.APPROVED],
    S.REJECTED: [S.REJECTED],
    S.CANCELLED: [S.CANCELLED],
}

ALLOWED = [
    (S.PENDING_ADMIN, S.PENDING_GERENCIA),
    (S.PENDING_GERENCIA, S.APPROVED),
    (S.PENDING_ADMIN, S.REJECTED),
    (S.PENDING_GERENCIA, S.REJECTED),
    (S.APPROVED, S.CANCELLED),
    (S.PENDING_ADMIN, S.CANCELLED),
    (S.PENDING_GERENCIA, S.CANCELLED),
]

NOT_ALLOWED = [
    (S.PENDING_ADMIN, S.APPROVED),
    (S.APPROVED, S.PENDING_ADMIN),
    (S.APPROVED, S.REJECTED),
    (S.REJECTED, S.PENDING_ADMIN),
    (S.CANCELLED, S.APPROVED),
    (S.PENDING_GERENCIA, S.PENDING_ADMIN),
]


class TestSetRequisitionState:

    @pytest.fixture
    def requisition_in(self, requisition_ledger, products, test_actor_id):
        def _make(state):
            requisition_id = _create(requisition_ledger).data["id"]
            for step in _PATH_TO[state]:
                assert requisition_ledger.set_requisition_state(
                    requisition_id, step, actor_id=test_actor_id,
                ).is_success
            return requisition_id
        return _make

    @pytest.mark.parametrize("from_state,to_state", ALLOWED)
    def test_allowed_transitions(
        self, requisition_in, requisition_ledger, purchasing_selector, test_actor_id,
        from_state, to_state,
    ):
        requisition_id = requisition_in(from_state)

        result = requisition_ledger.set_requisition_state(
            requisition_id, to_state, actor_id=test_actor_id,
        )

        assert result.status == "OK"
        assert purchasing_selector.get_requisition(requisition_id).status == to_state

    @pytest.mark.parametrize("from_state,to_state", NOT_ALLOWED)
    def test_disallowed_transitions_name_both_states(
        self, requisition_in, requisition_ledger, purchasing_selector, test_actor_id,
        from_state, to_state,
    ):
        requisition_id = requisition_in(from_state)

        result = requisition_ledger.set_requisition_state(
            requisition_id, to_state, actor_id=test_actor_id,
        )

        assert result.status == "TRANSITION_NOT_ALLOWED"
        assert from_state.value in result.message
        assert to_state.value in result.message
        assert purchasing_selector.get_requisition(requisition_id).status == from_state

    @pytest.mark.parametrize("state", list(S))
    def test_same_state_is_no_op_success(self, requisition_in, requisition_ledger, test_actor_id, state):
        requisition_id = requisition_in(state)

        result = requisition_ledger.set_requisition_state(
            requisition_id, state, actor_id=test_actor_id,
        )

        assert result.is_success
        assert result.status == "NO_CHANGE"

    def test_note_overwritten(self, requisition_ledger, purchasing_selector, products, test_actor_id):
        requisition_id = _create(requisition_ledger, note="first").data["id"]

        requisition_ledger.set_requisition_state(
            requisition_id, S.REJECTED, actor_id=test_actor_id, note="missing budget",
        )

        assert purchasing_selector.get_requisition(requisition_id).note == "missing budget"

    def test_string_state_accepted(self, requisition_ledger, products, test_actor_id):
        requisition_id = _create(requisition_ledger).data["id"]

        result = requisition_ledger.set_requisition_state(
            requisition_id, "PENDING_GERENCIA", actor_id=test_actor_id,
        )

        assert result.status == "OK"

    def test_unknown_state(self, requisition_ledger, products, test_actor_id):
        requisition_id = _create(requisition_ledger).data["id"]

        result = requisition_ledger.set_requisition_state(
            requisition_id, "ARCHIVED", actor_id=test_actor_id,
        )

        assert result.status == "VALIDATION_ERROR"

    def test_unknown_requisition(self, requisition_ledger, test_actor_id):
        result = requisition_ledger.set_requisition_state(
            uuid4(), S.APPROVED, actor_id=test_actor_id,
        )

        assert result.status == "REQUISITION_NOT_FOUND"
