"""
Typed exception hierarchy for the inventory kernel.

Every error carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as attributes, so callers catch by type and read
structured data instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- TenantError
    |   +-- TenantContextError
    |
    +-- TransactionError
    |   +-- ConnectionInterruptedError
    |
    +-- LedgerError
        +-- InvalidTransactionTypeError
        +-- InvalidLedgerEntryError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|------------------------------------------
Tenant       | INVALID_TENANT_CONTEXT    | Tenant context missing or malformed
-------------|---------------------------|------------------------------------------
Transaction  | CONNECTION_INTERRUPTED    | Transient failures exhausted the retry
             |                           | budget of the tenant executor
-------------|---------------------------|------------------------------------------
Ledger       | INVALID_TRANSACTION_TYPE  | Unknown ledger transaction type string
             | INVALID_LEDGER_ENTRY      | Negative quantity or cost on an entry

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        orchestrator.recalculate(context, "Fertilizer-X")
    except ConnectionInterruptedError as e:
        # Infrastructure flakiness -- safe to retry the request.
        return retry_later(code=e.code, attempts=e.attempts)

Data errors raised by the database (IntegrityError, ProgrammingError) are
NOT wrapped; they reach the caller unchanged.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Tenant-related exceptions


class TenantError(InventoryKernelError):
    """Base exception for tenant scoping errors."""

    code: str = "TENANT_ERROR"


class TenantContextError(TenantError):
    """Tenant context is missing a tenant id or role."""

    code: str = "INVALID_TENANT_CONTEXT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid tenant context ({field}): {reason}")


# Transaction-related exceptions


class TransactionError(InventoryKernelError):
    """Base exception for tenant transaction failures."""

    code: str = "TRANSACTION_ERROR"


class ConnectionInterruptedError(TransactionError):
    """
    Transient infrastructure failures exhausted the retry budget.

    Wraps the last underlying cause (also chained as ``__cause__``) so
    callers can tell connectivity problems apart from data errors.
    """

    code: str = "CONNECTION_INTERRUPTED"

    def __init__(self, tenant_id: str, attempts: int, cause: BaseException):
        self.tenant_id = tenant_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Connection interrupted after {attempts} attempt(s) "
            f"for tenant {tenant_id}: {type(cause).__name__}: {cause}"
        )


# Ledger-related exceptions


class LedgerError(InventoryKernelError):
    """Base exception for ledger entry errors."""

    code: str = "LEDGER_ERROR"


class InvalidTransactionTypeError(LedgerError):
    """Ledger transaction type string is not recognized."""

    code: str = "INVALID_TRANSACTION_TYPE"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown ledger transaction type: {value!r}")


class InvalidLedgerEntryError(LedgerError):
    """Ledger entry carries a negative quantity or cost."""

    code: str = "INVALID_LEDGER_ENTRY"

    def __init__(self, entry_id: int | None, field: str, value: str):
        self.entry_id = entry_id
        self.field = field
        self.value = value
        super().__init__(
            f"Ledger entry {entry_id} has invalid {field}: {value}"
        )
