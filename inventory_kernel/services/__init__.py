"""Kernel services -- tenant-scoped data access."""

from inventory_kernel.services.ledger_store import LedgerStore

__all__ = ["LedgerStore"]
