"""Pure domain values shared by every layer."""

from shopfloor_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from shopfloor_kernel.domain.results import OperationResult, OperationStatus

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "OperationResult",
    "OperationStatus",
]
