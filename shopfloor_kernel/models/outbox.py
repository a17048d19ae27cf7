"""
OutboxEvent -- post-commit notifications recorded in the writer's transaction.

A receipt writes one row per external notification in the same transaction
as its movements.  The dispatcher delivers PENDING rows after commit and
records the attempt.  Columns are typed and versioned; there is no free-form
payload blob, so readers never parse unstructured data.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor_kernel.db.base import Base


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class OutboxEventType(str, Enum):
    """Known event types.  Bump the schema version when the subject changes."""

    JOB_COSTS_STALE = "JOB_COSTS_STALE"


class OutboxEvent(Base):
    """
    A notification waiting for (or done with) delivery.

    ``subject_ref`` identifies what the event is about; for
    JOB_COSTS_STALE it is the job id.  ``source_ref`` records what caused it,
    e.g. the order code of the receipt.
    """

    __tablename__ = "outbox_events"

    __table_args__ = (
        Index("idx_outbox_status_occurred", "status", "occurred_at"),
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    subject_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    source_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OutboxStatus.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(String(500), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<OutboxEvent {self.event_type} v{self.schema_version} "
            f"subject={self.subject_ref} status={self.status}>"
        )
