"""
Inventory Kernel

Tenant-isolated ledger storage for a multi-tenant operations system:
- Append-only transaction ledger shared by all tenants
- Tenant-pinned, retrying transactions
- Derived per-bucket inventory state upserted from full ledger replay
"""

__version__ = "0.1.0"
