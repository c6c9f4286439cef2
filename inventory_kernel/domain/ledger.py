"""
Ledger -- Domain values for ledger entries, buckets and inventory state.

Responsibility:
    Immutable representations of the append-only transaction ledger
    (LedgerEntry), the (item, location) scope replay runs over (Bucket), and
    the derived per-bucket inventory figures (InventoryState).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Used by the ledger store (kernel services), the costing engine and the
    recalculation orchestrator.

Invariants enforced:
    - LedgerEntry quantity and total_cost are non-negative.
    - InventoryState.avg_unit_cost is always derived from total_cost and
      quantity; it is never an independent field.
    - The pooled bucket is location_id=None.  Blank strings and the literal
      "unassigned" normalize to the pooled bucket.

Failure modes:
    - InvalidTransactionTypeError from TransactionType.parse().
    - InvalidLedgerEntryError from LedgerEntry.__post_init__.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from inventory_kernel.exceptions import (
    InvalidLedgerEntryError,
    InvalidTransactionTypeError,
)

ZERO = Decimal("0")

UNASSIGNED_LOCATION = "unassigned"


class TransactionType(str, Enum):
    """Ledger transaction types.

    Only RESTOCK and DEPLETE move stock.  The audit types are recorded by
    the CRUD layer and skipped by replay.
    """

    RESTOCK = "restock"
    DEPLETE = "deplete"
    ITEM_DELETED = "item_deleted"
    UNIT_CHANGED = "unit_changed"

    @property
    def moves_stock(self) -> bool:
        return self in (TransactionType.RESTOCK, TransactionType.DEPLETE)

    @classmethod
    def parse(cls, value: str | TransactionType) -> TransactionType:
        """Normalize a stored or user-supplied transaction type string.

        Case, surrounding whitespace and word separators (spaces, hyphens,
        underscores) are ignored, so "Item Deleted", "item-deleted" and
        "item_deleted" all parse to ITEM_DELETED.
        """
        if isinstance(value, TransactionType):
            return value
        normalized = "_".join(str(value or "").strip().lower().replace("-", " ").split())
        alias = _TYPE_ALIASES.get(normalized)
        if alias is not None:
            return alias
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidTransactionTypeError(str(value)) from None


_TYPE_ALIASES = {
    "restocking": TransactionType.RESTOCK,
    "depleting": TransactionType.DEPLETE,
    "unit_change": TransactionType.UNIT_CHANGED,
}


def normalize_location_id(value: str | None) -> str | None:
    """Map a raw location id to its bucket key (None is the pooled bucket)."""
    if value is None:
        return None
    stripped = str(value).strip()
    if not stripped or stripped.lower() == UNASSIGNED_LOCATION:
        return None
    return stripped


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """
    One restock/deplete movement as read from the ledger.

    Contract:
        Read-only snapshot of a transaction_history row.  The core never
        creates, edits or deletes ledger rows; it only replays them.

    Guarantees:
        - quantity >= 0 and total_cost >= 0.
        - replay_key gives the total replay order (occurred_at, id).
    """

    id: int
    tenant_id: str
    item_type: str
    location_id: str | None
    transaction_type: TransactionType
    quantity: Decimal
    total_cost: Decimal
    occurred_at: datetime

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise InvalidLedgerEntryError(self.id, "quantity", str(self.quantity))
        if self.total_cost < 0:
            raise InvalidLedgerEntryError(self.id, "total_cost", str(self.total_cost))

    @property
    def replay_key(self) -> tuple[datetime, int]:
        return (self.occurred_at, self.id)

    @property
    def bucket(self) -> Bucket:
        return Bucket(self.item_type, self.location_id)


@dataclass(frozen=True, slots=True)
class Bucket:
    """The (item_type, location_id) scope replay runs over within a tenant."""

    item_type: str
    location_id: str | None = None

    @property
    def is_pooled(self) -> bool:
        return self.location_id is None


@dataclass(frozen=True, slots=True)
class InventoryState:
    """
    Derived inventory figures for one bucket.

    Contract:
        Produced by replaying the bucket's full ledger history.  Never
        patched incrementally.

    Guarantees:
        - quantity >= 0 and total_cost >= 0 (clamped by replay).
        - avg_unit_cost == total_cost / quantity, or 0 when quantity == 0.
    """

    tenant_id: str
    item_type: str
    location_id: str | None
    quantity: Decimal
    unit: str
    total_cost: Decimal

    @property
    def avg_unit_cost(self) -> Decimal:
        if self.quantity > 0:
            return self.total_cost / self.quantity
        return ZERO

    @property
    def bucket(self) -> Bucket:
        return Bucket(self.item_type, self.location_id)


def affected_buckets(
    before: LedgerEntry | Bucket | None,
    after: LedgerEntry | Bucket | None,
) -> tuple[Bucket, ...]:
    """Buckets a single ledger mutation may have changed.

    ``before`` is the row prior to the mutation (None for inserts) and
    ``after`` the row after it (None for deletes).  An edit that moves an
    entry between items or locations touches two buckets.
    """
    buckets: list[Bucket] = []
    for side in (before, after):
        if side is None:
            continue
        bucket = side.bucket if isinstance(side, LedgerEntry) else side
        if bucket.item_type and bucket not in buckets:
            buckets.append(bucket)
    return tuple(buckets)


def dedupe_buckets(buckets: Iterable[Bucket]) -> tuple[Bucket, ...]:
    """Order-preserving de-duplication."""
    seen: dict[Bucket, None] = {}
    for bucket in buckets:
        seen.setdefault(bucket, None)
    return tuple(seen)
