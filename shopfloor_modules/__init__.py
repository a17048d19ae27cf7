"""
Shopfloor Modules.

Thin orchestration layers over the kernel and engines.
Each module contains:
- Domain models (the nouns)
- ORM persistence
- Read-side selectors
- Services owning the transaction of each public operation

Modules:
- Purchasing: Requisitions, providers, purchase orders
- Inventory: Products, movement ledger, receipts, moving-average cost
"""

from shopfloor_modules import inventory, purchasing

__all__ = [
    "inventory",
    "purchasing",
]
