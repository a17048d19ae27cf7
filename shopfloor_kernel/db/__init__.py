"""Database layer - engine, base classes, types, and append-only listeners."""

from shopfloor_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from shopfloor_kernel.db.engine import create_tables, get_engine, get_session
from shopfloor_kernel.db.types import Currency, Money, Quantity, Sequence

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "Currency",
    "Sequence",
]
