"""
Bounded retry over a "candidate -> attempt insert -> conflict?" primitive.

Responsibility:
    Runs an attempt callable at most ``max_attempts`` times.  Each attempt
    either produces a value or reports a conflict; a conflict moves on to the
    next attempt.  When every attempt conflicts, the caller gets an
    exhausted outcome and decides the fallback path.

    ``try_flush`` is the matching primitive: it flushes one new row inside
    a SAVEPOINT so that a unique-constraint violation rolls back only that
    row, never the surrounding transaction.

Architecture position:
    Kernel > Services.  Used by RequisitionLedger for code assignment and
    by the code backfill.

Usage:
    def attempt(n: int) -> Attempt[Model]:
        row = build_row(candidate_for(n))
        error = try_flush(session, row)
        return Attempt.conflicted() if error else Attempt.created(row)

    outcome = retry_bounded(attempt, max_attempts=5, operation="requisition_code")
    if outcome.exhausted:
        ...
"""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopfloor_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """What a single attempt produced."""

    value: T | None = None
    conflict: bool = False

    @classmethod
    def created(cls, value: T) -> "Attempt[T]":
        return cls(value=value, conflict=False)

    @classmethod
    def conflicted(cls) -> "Attempt[T]":
        return cls(value=None, conflict=True)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Final outcome of a bounded retry."""

    value: T | None
    attempts: int

    @property
    def exhausted(self) -> bool:
        return self.value is None


def retry_bounded(
    attempt: Callable[[int], Attempt[T]],
    max_attempts: int = MAX_ATTEMPTS,
    *,
    operation: str,
) -> RetryOutcome[T]:
    """
    Call ``attempt(1)``, ``attempt(2)``, ... until one does not conflict.

    Args:
        attempt: Receives the 1-based attempt number.
        max_attempts: Upper bound on calls to ``attempt``.
        operation: Name used in log records.

    Returns:
        RetryOutcome with the first non-conflicting value, or an exhausted
        outcome after ``max_attempts`` conflicts.

    Raises:
        ValueError: If max_attempts < 1.
        Whatever ``attempt`` raises; non-conflict errors are not retried.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for number in range(1, max_attempts + 1):
        result = attempt(number)
        if not result.conflict:
            return RetryOutcome(value=result.value, attempts=number)
        logger.info(
            "retry_attempt_conflict",
            extra={
                "operation": operation,
                "attempt": number,
                "max_attempts": max_attempts,
            },
        )

    logger.warning(
        "retry_attempts_exhausted",
        extra={"operation": operation, "max_attempts": max_attempts},
    )
    return RetryOutcome(value=None, attempts=max_attempts)


def try_flush(session: Session, instance: object) -> IntegrityError | None:
    """
    Add and flush ``instance`` inside a SAVEPOINT.

    Returns:
        None on success, or the IntegrityError after rolling the savepoint
        back.  The rest of the transaction is untouched either way.
    """
    savepoint = session.begin_nested()
    try:
        session.add(instance)
        session.flush()
    except IntegrityError as exc:
        savepoint.rollback()
        return exc
    savepoint.commit()
    return None
