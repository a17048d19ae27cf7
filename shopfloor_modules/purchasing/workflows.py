"""
Purchasing Workflows.

State machine for requisitions.  Orders move through fulfillment states
driven by receipts (see ``shopfloor_engines.receiving``), not by this table.
"""

from dataclasses import dataclass

from shopfloor_modules.purchasing.models import RequisitionStatus


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def allows(self, from_state: str, to_state: str) -> bool:
        return any(
            t.from_state == from_state and t.to_state == to_state
            for t in self.transitions
        )


_S = RequisitionStatus

REQUISITION_WORKFLOW = Workflow(
    name="purchase_requisition",
    description="SC approval: admin review, then management approval",
    initial_state=_S.PENDING_ADMIN.value,
    states=tuple(s.value for s in RequisitionStatus),
    transitions=(
        Transition(_S.PENDING_ADMIN.value, _S.PENDING_GERENCIA.value, action="admin_approve"),
        Transition(_S.PENDING_GERENCIA.value, _S.APPROVED.value, action="management_approve"),
        Transition(_S.PENDING_ADMIN.value, _S.REJECTED.value, action="reject"),
        Transition(_S.PENDING_GERENCIA.value, _S.REJECTED.value, action="reject"),
        Transition(_S.APPROVED.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.PENDING_ADMIN.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.PENDING_GERENCIA.value, _S.CANCELLED.value, action="cancel"),
    ),
)

# Cost lines stay editable in these states (APPROVED only while no order exists).
COST_EDITABLE_STATES = frozenset({
    _S.PENDING_ADMIN.value,
    _S.PENDING_GERENCIA.value,
})
