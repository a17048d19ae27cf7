"""Kernel-owned ORM models."""

from shopfloor_kernel.models.outbox import OutboxEvent, OutboxEventType, OutboxStatus

__all__ = ["OutboxEvent", "OutboxEventType", "OutboxStatus"]
