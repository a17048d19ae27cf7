"""
OperationResult -- uniform outcome of every public procurement operation.

Business-rule failures never escape as exceptions: services fold a
ShopfloorError into a failed result whose ``status`` is the error's ``code``.
Database failures become INFRASTRUCTURE_ERROR with a generic message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OperationStatus(str, Enum):
    """Statuses that are not derived from an exception code."""

    OK = "OK"
    NO_CHANGE = "NO_CHANGE"
    INFRASTRUCTURE_ERROR = "INFRASTRUCTURE_ERROR"


_SUCCESS_STATUSES = frozenset({OperationStatus.OK.value, OperationStatus.NO_CHANGE.value})


@dataclass(frozen=True)
class OperationResult:
    """Result of a procurement operation."""

    status: str
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status in _SUCCESS_STATUSES

    @classmethod
    def ok(cls, message: str | None = None, **data: Any) -> "OperationResult":
        return cls(status=OperationStatus.OK.value, message=message, data=data)

    @classmethod
    def no_change(cls, message: str | None = None, **data: Any) -> "OperationResult":
        return cls(status=OperationStatus.NO_CHANGE.value, message=message, data=data)

    @classmethod
    def failure(cls, code: str, message: str) -> "OperationResult":
        return cls(status=code, message=message)

    @classmethod
    def infrastructure_error(cls, message: str) -> "OperationResult":
        return cls(status=OperationStatus.INFRASTRUCTURE_ERROR.value, message=message)
