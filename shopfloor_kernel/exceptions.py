"""
Typed exception hierarchy for the shop-floor procurement core.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ShopfloorError:

    ShopfloorError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- RequisitionNotFoundError
    |   +-- OrderNotFoundError
    |   +-- ProviderNotFoundError
    |   +-- JobNotFoundError
    |
    +-- StateError
    |   +-- TransitionNotAllowedError
    |   +-- RequisitionLockedError
    |   +-- RequisitionNotApprovedError
    |   +-- OrderNotReceivableError
    |
    +-- AllocationShortfallError
    |
    +-- ReceiptError
    |   +-- UnknownOrderProductError
    |   +-- NonPositiveQuantityError
    |   +-- OverReceiptError
    |
    +-- ConflictError
    |   +-- DuplicateOrderCodeError
    |   +-- DuplicateTaxIdError
    |   +-- InvalidReferenceError
    |   +-- ProviderReferencedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- ImmutabilityViolationError
    |
    +-- AuthorizationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed or missing input field
----------------|-----------------------------|-----------------------------------------
Not found       | REQUISITION_NOT_FOUND       | Requisition id doesn't exist
                | ORDER_NOT_FOUND             | Order id doesn't exist
                | PROVIDER_NOT_FOUND          | Provider id doesn't exist
                | JOB_NOT_FOUND               | Job reference can't be resolved
----------------|-----------------------------|-----------------------------------------
State           | TRANSITION_NOT_ALLOWED      | Requisition state pair not permitted
                | REQUISITION_LOCKED          | Cost edit after ordering started
                | REQUISITION_NOT_APPROVED    | Order from a non-approved requisition
                | ORDER_NOT_RECEIVABLE        | Receipt against a settled order
----------------|-----------------------------|-----------------------------------------
Allocation      | ALLOCATION_SHORTFALL        | Order qty exceeds requisition pending
----------------|-----------------------------|-----------------------------------------
Receipt         | UNKNOWN_ORDER_PRODUCT       | Product not on the order
                | NON_POSITIVE_QUANTITY       | Receipt qty <= 0
                | OVER_RECEIPT                | Receipt qty exceeds order pending
----------------|-----------------------------|-----------------------------------------
Conflict        | DUPLICATE_ORDER_CODE        | Order code already exists
                | DUPLICATE_TAX_ID            | Provider tax id already exists
                | INVALID_REFERENCE           | Broken foreign key
                | PROVIDER_REFERENCED         | Provider still used by orders
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENCY_CONFLICT        | Order changed by another receipt
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a ledger movement
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_AUTHORIZED              | Permission guard denied the write

===============================================================================
HANDLING PATTERNS
===============================================================================

Services catch ShopfloorError and fold it into an OperationResult whose
status is the exception's ``code``.  AuthorizationError is the exception:
it always propagates to the caller's outer boundary.

    try:
        ledger.create_order(...)
    except OverReceiptError as e:
        api_response(code=e.code, product=e.product_sku, pending=e.pending)
"""

from decimal import Decimal


class ShopfloorError(Exception):
    """
    Base exception for all procurement core errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "SHOPFLOOR_ERROR"


# Validation


class ValidationError(ShopfloorError):
    """Malformed or missing input, rejected before any side effect."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not found


class NotFoundError(ShopfloorError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"

    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class RequisitionNotFoundError(NotFoundError):
    code: str = "REQUISITION_NOT_FOUND"
    entity_type = "requisition"


class OrderNotFoundError(NotFoundError):
    code: str = "ORDER_NOT_FOUND"
    entity_type = "order"


class ProviderNotFoundError(NotFoundError):
    code: str = "PROVIDER_NOT_FOUND"
    entity_type = "provider"


class JobNotFoundError(NotFoundError):
    code: str = "JOB_NOT_FOUND"
    entity_type = "job"


# State


class StateError(ShopfloorError):
    """Base exception for lifecycle state violations."""

    code: str = "STATE_ERROR"


class TransitionNotAllowedError(StateError):
    """Requisition state transition is not in the allowed set."""

    code: str = "TRANSITION_NOT_ALLOWED"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Transition not allowed: {from_state} -> {to_state}"
        )


class RequisitionLockedError(StateError):
    """Requisition cost lines can no longer be edited."""

    code: str = "REQUISITION_LOCKED"

    def __init__(self, requisition_id: str, state: str, order_count: int):
        self.requisition_id = str(requisition_id)
        self.state = state
        self.order_count = order_count
        super().__init__(
            f"Requisition {requisition_id} is locked for cost edits "
            f"(state={state}, orders={order_count})"
        )


class RequisitionNotApprovedError(StateError):
    """Orders can only be created from an APPROVED requisition."""

    code: str = "REQUISITION_NOT_APPROVED"

    def __init__(self, requisition_id: str, state: str):
        self.requisition_id = str(requisition_id)
        self.state = state
        super().__init__(
            f"Requisition {requisition_id} is {state}, not APPROVED"
        )


class OrderNotReceivableError(StateError):
    """Receipts are only posted against OPEN or PARTIAL orders."""

    code: str = "ORDER_NOT_RECEIVABLE"

    def __init__(self, order_id: str, state: str):
        self.order_id = str(order_id)
        self.state = state
        super().__init__(
            f"Order {order_id} cannot receive goods in state {state}"
        )


# Allocation


class AllocationShortfallError(ShopfloorError):
    """
    Desired order quantity exceeds what the requisition still has pending.

    The whole allocation is rejected; no partial order is planned.
    """

    code: str = "ALLOCATION_SHORTFALL"

    def __init__(self, product_sku: str, requested: Decimal, unallocated: Decimal):
        self.product_sku = product_sku
        self.requested = requested
        self.unallocated = unallocated
        super().__init__(
            f"Allocation shortfall for product {product_sku}: "
            f"{unallocated} of {requested} has no pending requisition quantity"
        )


# Receipt


class ReceiptError(ShopfloorError):
    """Base exception for rejected receipts."""

    code: str = "RECEIPT_ERROR"


class UnknownOrderProductError(ReceiptError):
    code: str = "UNKNOWN_ORDER_PRODUCT"

    def __init__(self, order_code: str, product_sku: str):
        self.order_code = order_code
        self.product_sku = product_sku
        super().__init__(
            f"Product {product_sku} is not part of order {order_code}"
        )


class NonPositiveQuantityError(ReceiptError):
    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, product_sku: str, quantity: Decimal):
        self.product_sku = product_sku
        self.quantity = quantity
        super().__init__(
            f"Received quantity for {product_sku} must be positive, got {quantity}"
        )


class OverReceiptError(ReceiptError):
    """Receipt would push the received total above the ordered total."""

    code: str = "OVER_RECEIPT"

    def __init__(self, product_sku: str, quantity: Decimal, pending: Decimal):
        self.product_sku = product_sku
        self.quantity = quantity
        self.pending = pending
        super().__init__(
            f"Cannot receive {quantity} of {product_sku}: only {pending} pending"
        )


# Conflict


class ConflictError(ShopfloorError):
    """Base exception for uniqueness and referential conflicts."""

    code: str = "CONFLICT"


class DuplicateOrderCodeError(ConflictError):
    code: str = "DUPLICATE_ORDER_CODE"

    def __init__(self, order_code: str):
        self.order_code = order_code
        super().__init__(f"Order code already exists: {order_code}")


class DuplicateTaxIdError(ConflictError):
    code: str = "DUPLICATE_TAX_ID"

    def __init__(self, tax_id: str):
        self.tax_id = tax_id
        super().__init__(f"Tax id already exists: {tax_id}")


class InvalidReferenceError(ConflictError):
    """A provider or product reference does not resolve."""

    code: str = "INVALID_REFERENCE"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid reference: {detail}")


class ProviderReferencedError(ConflictError):
    code: str = "PROVIDER_REFERENCED"

    def __init__(self, provider_id: str):
        self.provider_id = str(provider_id)
        super().__init__(
            f"Provider {provider_id} has references and cannot be deleted"
        )


# Concurrency


class ConcurrencyError(ShopfloorError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Optimistic version check failed on commit."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            "entity was changed by another transaction"
        )


# Immutability


class ImmutabilityViolationError(ShopfloorError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Authorization


class AuthorizationError(ShopfloorError):
    """
    Raised by the permission guard.  Never folded into a result.
    """

    code: str = "NOT_AUTHORIZED"

    def __init__(self, permission: str):
        self.permission = permission
        super().__init__(f"Not authorized: {permission}")
