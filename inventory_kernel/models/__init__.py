"""ORM models for the transaction ledger and derived inventory state."""

from inventory_kernel.models.ledger import InventoryStateModel, LedgerEntryModel

__all__ = [
    "InventoryStateModel",
    "LedgerEntryModel",
]
