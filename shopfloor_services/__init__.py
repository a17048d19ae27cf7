"""
Shopfloor Services.

Stateful services shared by the modules: collaborator ports and the
outbox dispatcher that delivers post-commit notifications.
"""

from shopfloor_services.collaborators import (
    AllowAllGuard,
    CurrencyCatalog,
    DenyAllGuard,
    JobCostHook,
    JobDirectory,
    NullJobCostHook,
    PurchasesGuard,
    RegistryCurrencyCatalog,
    StaticJobDirectory,
    resolve_currency,
)
from shopfloor_services.outbox import DispatchSummary, OutboxDispatcher

__all__ = [
    "AllowAllGuard",
    "CurrencyCatalog",
    "DenyAllGuard",
    "JobCostHook",
    "JobDirectory",
    "NullJobCostHook",
    "PurchasesGuard",
    "RegistryCurrencyCatalog",
    "StaticJobDirectory",
    "resolve_currency",
    "DispatchSummary",
    "OutboxDispatcher",
]
