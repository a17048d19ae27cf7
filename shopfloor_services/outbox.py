"""
OutboxDispatcher -- post-commit delivery of outbox events.

Responsibility:
    Writers call ``enqueue_job_costs_stale`` inside their own transaction,
    so the notification commits (or rolls back) with the receipt itself.
    After commit, ``dispatch`` hands each PENDING event to the JobCostHook.

Architecture position:
    Services -- stateful orchestration over the kernel OutboxEvent model.

Invariants enforced:
    - A hook failure never propagates: it is logged, counted and the event
      stays PENDING until ``outbox_max_attempts`` is reached, then FAILED.
    - An event is delivered at most once; DELIVERED and FAILED are terminal.

Failure modes:
    - SQLAlchemyError while recording an attempt propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from shopfloor_kernel.domain.clock import Clock, SystemClock
from shopfloor_kernel.logging_config import get_logger
from shopfloor_kernel.models.outbox import OutboxEvent, OutboxEventType, OutboxStatus
from shopfloor_services.collaborators import JobCostHook

logger = get_logger("services.outbox")

JOB_COSTS_STALE_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class DispatchSummary:
    delivered: int = 0
    retrying: int = 0
    failed: int = 0


class OutboxDispatcher:
    """
    Records and delivers job-cost notifications.

    Contract:
        ``enqueue_*`` never commits.  ``dispatch*`` commits after each
        attempt so a later failure does not undo an earlier delivery.
    """

    def __init__(
        self,
        session: Session,
        job_cost_hook: JobCostHook,
        clock: Clock | None = None,
        max_attempts: int = 5,
    ):
        self._session = session
        self._hook = job_cost_hook
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts

    def enqueue_job_costs_stale(self, job_id: str, source_ref: str | None = None) -> OutboxEvent:
        event = OutboxEvent(
            event_type=OutboxEventType.JOB_COSTS_STALE.value,
            schema_version=JOB_COSTS_STALE_SCHEMA_VERSION,
            subject_ref=job_id,
            source_ref=source_ref,
            status=OutboxStatus.PENDING.value,
            attempts=0,
            occurred_at=self._clock.now(),
        )
        self._session.add(event)
        self._session.flush()
        logger.info(
            "outbox_event_enqueued",
            extra={
                "event_id": str(event.id),
                "event_type": event.event_type,
                "subject_ref": job_id,
                "source_ref": source_ref,
            },
        )
        return event

    def dispatch(self, event_ids: Sequence[UUID]) -> DispatchSummary:
        """Attempt delivery of the given events (skipping non-PENDING ones)."""
        if not event_ids:
            return DispatchSummary()
        events = self._session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.id.in_(list(event_ids)))
            .where(OutboxEvent.status == OutboxStatus.PENDING.value)
            .order_by(OutboxEvent.occurred_at)
        ).scalars().all()
        return self._deliver_all(events)

    def dispatch_pending(self, limit: int = 100) -> DispatchSummary:
        """Retry every PENDING event, oldest first."""
        events = self._session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatus.PENDING.value)
            .order_by(OutboxEvent.occurred_at)
            .limit(limit)
        ).scalars().all()
        return self._deliver_all(events)

    def _deliver_all(self, events: Sequence[OutboxEvent]) -> DispatchSummary:
        delivered = retrying = failed = 0
        for event in events:
            status = self._deliver(event)
            if status == OutboxStatus.DELIVERED:
                delivered += 1
            elif status == OutboxStatus.FAILED:
                failed += 1
            else:
                retrying += 1
        return DispatchSummary(delivered=delivered, retrying=retrying, failed=failed)

    def _deliver(self, event: OutboxEvent) -> OutboxStatus:
        event.attempts += 1
        try:
            if event.event_type == OutboxEventType.JOB_COSTS_STALE.value:
                self._hook.recompute_linked_job_costs(event.subject_ref)
            else:
                raise ValueError(f"Unknown outbox event type: {event.event_type}")
        except Exception as exc:
            event.last_error = f"{type(exc).__name__}: {exc}"[:500]
            if event.attempts >= self._max_attempts:
                event.status = OutboxStatus.FAILED.value
            logger.warning(
                "outbox_delivery_failed",
                exc_info=True,
                extra={
                    "event_id": str(event.id),
                    "event_type": event.event_type,
                    "attempts": event.attempts,
                    "status": event.status,
                },
            )
        else:
            event.status = OutboxStatus.DELIVERED.value
            event.delivered_at = self._clock.now()
            event.last_error = None
            logger.info(
                "outbox_event_delivered",
                extra={
                    "event_id": str(event.id),
                    "event_type": event.event_type,
                    "attempts": event.attempts,
                },
            )
        self._session.commit()
        return OutboxStatus(event.status)
