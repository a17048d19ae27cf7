"""Kernel services - sequence allocation and bounded retry."""

from shopfloor_kernel.services.retry import (
    MAX_ATTEMPTS,
    Attempt,
    RetryOutcome,
    retry_bounded,
    try_flush,
)
from shopfloor_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "MAX_ATTEMPTS",
    "Attempt",
    "RetryOutcome",
    "retry_bounded",
    "try_flush",
    "SequenceCounter",
    "SequenceService",
]
