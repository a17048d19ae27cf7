"""
Collaborator ports consumed by the procurement core.

Responsibility:
    Declare the external collaborators the ledgers and the receiving
    processor call into, as ``Protocol`` types, plus the small default
    implementations used by scripts and tests.

Ports:
    PurchasesGuard   -- authorization gate; raises AuthorizationError.
    CurrencyCatalog  -- resolves a currency code against the live catalog.
    JobCostHook      -- best-effort "recompute linked job costs".
    JobDirectory     -- resolves a job reference (id or code) to a job id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from shopfloor_kernel.db.types import normalize_currency
from shopfloor_kernel.exceptions import AuthorizationError
from shopfloor_kernel.logging_config import get_logger

logger = get_logger("services.collaborators")


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


@runtime_checkable
class PurchasesGuard(Protocol):
    def assert_can_write_purchases(self) -> None:
        """Return normally when allowed; raise AuthorizationError otherwise."""
        ...


class AllowAllGuard:
    """Guard for scripts and tests that run outside a user session."""

    def assert_can_write_purchases(self) -> None:
        return None


class DenyAllGuard:
    def assert_can_write_purchases(self) -> None:
        raise AuthorizationError("purchases:write")


# ---------------------------------------------------------------------------
# Currency catalog
# ---------------------------------------------------------------------------


@runtime_checkable
class CurrencyCatalog(Protocol):
    def lookup(self, code: str | None) -> str | None:
        """Normalized active code, or None when unknown or inactive."""
        ...


class RegistryCurrencyCatalog:
    """ISO 4217 registry restricted to the configured active codes."""

    def __init__(self, active_codes: Iterable[str]):
        self._active = frozenset(
            code for code in (normalize_currency(c) for c in active_codes) if code
        )

    @property
    def active_codes(self) -> frozenset[str]:
        return self._active

    def lookup(self, code: str | None) -> str | None:
        normalized = normalize_currency(code)
        if normalized is None or normalized not in self._active:
            return None
        return normalized


def resolve_currency(
    catalog: CurrencyCatalog,
    *candidates: str | None,
    default: str,
) -> str:
    """
    First candidate the catalog accepts, else ``default``.

    Candidates are tried in order (e.g. explicit input, then the provider's
    preferred currency).  Unknown codes are skipped, never raised.
    """
    for candidate in candidates:
        if not candidate:
            continue
        resolved = catalog.lookup(candidate)
        if resolved is not None:
            return resolved
        logger.info(
            "currency_candidate_rejected",
            extra={"candidate": candidate},
        )
    return default


# ---------------------------------------------------------------------------
# Job costs
# ---------------------------------------------------------------------------


@runtime_checkable
class JobCostHook(Protocol):
    def recompute_linked_job_costs(self, job_id: str) -> None:
        ...


class NullJobCostHook:
    """Hook that does nothing.  Used when job costing is not wired in."""

    def recompute_linked_job_costs(self, job_id: str) -> None:
        return None


@runtime_checkable
class JobDirectory(Protocol):
    def resolve(self, job_ref: str) -> str | None:
        """Job id for an id or a human code, or None when unknown."""
        ...


class StaticJobDirectory:
    """
    In-memory directory: ``{job_id: job_code}``.

    A reference resolves when it equals a job id or a job code.
    """

    def __init__(self, jobs: Mapping[str, str]):
        self._by_id = dict(jobs)
        self._by_code = {code: job_id for job_id, code in jobs.items()}

    def resolve(self, job_ref: str) -> str | None:
        if job_ref in self._by_id:
            return job_ref
        return self._by_code.get(job_ref)
