"""
ORM-level append-only enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  Any mapped class declaring ``__immutable__ = True`` gets a
``before_update`` and a ``before_delete`` listener that raises
ImmutabilityViolationError:

    session.flush()
         |
         v
    [before_update] --> _reject_update() --> ImmutabilityViolationError
    [before_delete] --> _reject_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only for mutable models)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | When Immutable          | Why
------------------------|-------------------------|----------------------------------
InventoryMovement       | ALWAYS (from creation)  | Received-so-far and average cost
                        |                         | are re-derived from the ledger

===============================================================================
USAGE
===============================================================================

    from shopfloor_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once, after ORM models are imported

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from shopfloor_kernel.db.base import Base
from shopfloor_kernel.exceptions import ImmutabilityViolationError
from shopfloor_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _reject(operation: str, target) -> None:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} rows are append-only and cannot be {operation.lower()}d",
    )


def _reject_update(mapper, connection, target):
    _reject("UPDATE", target)


def _reject_delete(mapper, connection, target):
    _reject("DELETE", target)


def immutable_models() -> list[type]:
    """Every mapped class that declares ``__immutable__ = True``."""
    return [
        mapper.class_
        for mapper in Base.registry.mappers
        if getattr(mapper.class_, "__immutable__", False)
    ]


def register_immutability_listeners() -> None:
    """
    Register append-only listeners on every immutable model.

    Idempotent.  Call after all ORM models are imported.
    """
    for model in immutable_models():
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove append-only listeners.

    WARNING: Only use this in tests that must bypass the ledger rules.
    """
    for model in immutable_models():
        _safe_remove_listener(model, "before_update", _reject_update)
        _safe_remove_listener(model, "before_delete", _reject_delete)
