"""Domain values -- tenant context, ledger entries, inventory state."""

from inventory_kernel.domain.ledger import (
    Bucket,
    InventoryState,
    LedgerEntry,
    TransactionType,
    affected_buckets,
    dedupe_buckets,
    normalize_location_id,
)
from inventory_kernel.domain.tenant import (
    DEFAULT_ROLE,
    FALLBACK_TENANT_ID,
    TenantContext,
    normalize_tenant_context,
)

__all__ = [
    "Bucket",
    "InventoryState",
    "LedgerEntry",
    "TransactionType",
    "affected_buckets",
    "dedupe_buckets",
    "normalize_location_id",
    "DEFAULT_ROLE",
    "FALLBACK_TENANT_ID",
    "TenantContext",
    "normalize_tenant_context",
]
