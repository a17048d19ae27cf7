"""
Shared helpers for module operation flows.

Used by shopfloor_modules/*/service.py to fold business-rule failures into
an OperationResult and to own the commit/rollback of each public operation.

Architecture: Modules layer. Imports only from shopfloor_kernel.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopfloor_kernel.db.types import to_decimal
from shopfloor_kernel.domain.results import OperationResult
from shopfloor_kernel.exceptions import (
    AuthorizationError,
    ShopfloorError,
    ValidationError,
)
from shopfloor_kernel.logging_config import LogContext, get_logger

logger = get_logger("modules.operations")


def run_operation(
    session: Session,
    *,
    operation: str,
    failure_message: str,
    work: Callable[[], OperationResult],
    actor_id: Any = None,
    context: dict[str, Any] | None = None,
) -> OperationResult:
    """Run ``work`` as one transaction and map its outcome to a result.

    Commits when ``work`` returns a successful result, rolls back otherwise.

    - ShopfloorError -> failed result with ``status = error.code``.
    - SQLAlchemyError -> logged with traceback, INFRASTRUCTURE_ERROR with
      ``failure_message``.
    - AuthorizationError and any other exception -> rolled back and raised.
    """
    extra = dict(context or {})
    with LogContext.bind(
        operation=operation,
        actor_id=str(actor_id) if actor_id is not None else None,
    ):
        try:
            result = work()
            if result.is_success:
                session.commit()
            else:
                session.rollback()
        except AuthorizationError:
            session.rollback()
            raise
        except ShopfloorError as exc:
            session.rollback()
            logger.info(
                f"{operation}_rejected",
                extra={**extra, "error_code": exc.code, "reason": str(exc)},
            )
            return OperationResult.failure(exc.code, str(exc))
        except SQLAlchemyError:
            session.rollback()
            logger.error(
                f"{operation}_infrastructure_error",
                exc_info=True,
                extra=extra,
            )
            return OperationResult.infrastructure_error(failure_message)
        except Exception:
            session.rollback()
            raise
    return result


def parse_decimal(value: Any, field: str) -> Decimal:
    """Coerce caller input to Decimal or raise ValidationError naming ``field``."""
    if value is None:
        raise ValidationError(field, "a number is required")
    try:
        parsed = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"not a number: {value!r}") from None
    if not parsed.is_finite():
        raise ValidationError(field, f"not a finite number: {value!r}")
    return parsed


def parse_optional_decimal(value: Any, field: str) -> Decimal | None:
    return None if value is None else parse_decimal(value, field)
