"""
ProviderRegistry -- create, update and delete goods providers.

Tax ids are unique.  A provider referenced by any purchase order cannot be
deleted.  Uniqueness and reference conflicts are classified by re-checking
the data after an integrity failure, never by parsing driver error codes.
"""

from __future__ import annotations

import re
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopfloor_config import PurchasingSettings, get_settings
from shopfloor_kernel.domain.results import OperationResult
from shopfloor_kernel.exceptions import (
    DuplicateTaxIdError,
    ProviderNotFoundError,
    ProviderReferencedError,
    ValidationError,
)
from shopfloor_kernel.logging_config import get_logger
from shopfloor_kernel.services.retry import try_flush
from shopfloor_modules._operation_helpers import run_operation
from shopfloor_modules.purchasing.models import ProviderInput
from shopfloor_modules.purchasing.orm import ProviderModel, PurchaseOrderModel
from shopfloor_services.collaborators import (
    CurrencyCatalog,
    PurchasesGuard,
    RegistryCurrencyCatalog,
)

logger = get_logger("modules.purchasing.providers")

MIN_NAME_LENGTH = 2
MIN_TAX_ID_LENGTH = 8

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ProviderRegistry:
    """Writes provider records."""

    def __init__(
        self,
        session: Session,
        guard: PurchasesGuard,
        settings: PurchasingSettings | None = None,
        currency_catalog: CurrencyCatalog | None = None,
    ):
        self._session = session
        self._guard = guard
        settings = settings or get_settings()
        self._catalog = currency_catalog or RegistryCurrencyCatalog(
            settings.active_currencies
        )

    def _validated(self, data: ProviderInput) -> dict:
        name = _clean(data.name)
        if name is None or len(name) < MIN_NAME_LENGTH:
            raise ValidationError("name", f"must be at least {MIN_NAME_LENGTH} characters")
        tax_id = _clean(data.tax_id)
        if tax_id is None or len(tax_id) < MIN_TAX_ID_LENGTH:
            raise ValidationError(
                "tax_id", f"must be at least {MIN_TAX_ID_LENGTH} characters"
            )
        email = _clean(data.email)
        if email is not None and not _EMAIL_PATTERN.match(email):
            raise ValidationError("email", f"not a valid address: {email}")
        currency = _clean(data.preferred_currency)
        if currency is not None:
            resolved = self._catalog.lookup(currency)
            if resolved is None:
                raise ValidationError(
                    "preferred_currency", f"unknown or inactive currency {currency}"
                )
            currency = resolved
        return {
            "name": name,
            "tax_id": tax_id,
            "contact_name": _clean(data.contact_name),
            "email": email,
            "phone": _clean(data.phone),
            "preferred_currency": currency,
        }

    def _tax_id_taken(self, tax_id: str, exclude: UUID | None = None) -> bool:
        stmt = select(ProviderModel.id).where(ProviderModel.tax_id == tax_id)
        if exclude is not None:
            stmt = stmt.where(ProviderModel.id != exclude)
        return self._session.execute(stmt).first() is not None

    def _save(self, provider: ProviderModel) -> None:
        # The savepoint rollback expires the instance; read the keys first.
        tax_id, provider_id = provider.tax_id, provider.id
        error = try_flush(self._session, provider)
        if error is None:
            return
        if self._tax_id_taken(tax_id, exclude=provider_id):
            raise DuplicateTaxIdError(tax_id)
        raise error

    def create_provider(self, data: ProviderInput, *, actor_id: UUID) -> OperationResult:
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            values = self._validated(data)
            provider = ProviderModel(created_by_id=actor_id, **values)
            self._save(provider)
            logger.info(
                "provider_created",
                extra={"provider_id": str(provider.id), "tax_id": provider.tax_id},
            )
            return OperationResult.ok(id=provider.id)

        return run_operation(
            self._session,
            operation="create_provider",
            failure_message="Could not create the provider",
            work=work,
            actor_id=actor_id,
        )

    def update_provider(
        self, provider_id: UUID, data: ProviderInput, *, actor_id: UUID,
    ) -> OperationResult:
        """Replace every provider field with ``data``."""
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            provider = self._session.get(ProviderModel, provider_id)
            if provider is None:
                raise ProviderNotFoundError(provider_id)
            values = self._validated(data)
            if self._tax_id_taken(values["tax_id"], exclude=provider.id):
                raise DuplicateTaxIdError(values["tax_id"])
            for key, value in values.items():
                setattr(provider, key, value)
            provider.updated_by_id = actor_id
            self._save(provider)
            logger.info("provider_updated", extra={"provider_id": str(provider.id)})
            return OperationResult.ok(id=provider.id)

        return run_operation(
            self._session,
            operation="update_provider",
            failure_message="Could not update the provider",
            work=work,
            actor_id=actor_id,
            context={"provider_id": str(provider_id)},
        )

    def delete_provider(self, provider_id: UUID, *, actor_id: UUID) -> OperationResult:
        self._guard.assert_can_write_purchases()

        def work() -> OperationResult:
            provider = self._session.get(ProviderModel, provider_id)
            if provider is None:
                raise ProviderNotFoundError(provider_id)
            references = self._session.execute(
                select(func.count(PurchaseOrderModel.id))
                .where(PurchaseOrderModel.provider_id == provider.id)
            ).scalar_one()
            if references:
                raise ProviderReferencedError(provider.id)
            savepoint = self._session.begin_nested()
            try:
                self._session.delete(provider)
                self._session.flush()
            except IntegrityError:
                savepoint.rollback()
                raise ProviderReferencedError(provider_id) from None
            savepoint.commit()
            logger.info("provider_deleted", extra={"provider_id": str(provider_id)})
            return OperationResult.ok(id=provider_id)

        return run_operation(
            self._session,
            operation="delete_provider",
            failure_message="Could not delete the provider",
            work=work,
            actor_id=actor_id,
            context={"provider_id": str(provider_id)},
        )
