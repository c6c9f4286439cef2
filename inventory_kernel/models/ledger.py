"""
Module: inventory_kernel.models.ledger
Responsibility: ORM persistence for the append-only transaction ledger
    (``transaction_history``) and the derived inventory state
    (``current_inventory``).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every row carries a tenant_id; all tenants share these tables and
      isolation comes from tenant predicates plus session-pinned RLS.
    - Replay order index (tenant_id, item_type, location_id,
      transaction_date, id) supports the (occurred_at, id) total order.
    - At most one current_inventory row per (tenant, item, location):
      a regular unique constraint for location-scoped rows and a partial
      unique index for the pooled (location_id IS NULL) row, since
      NULL never equals NULL under a standard unique constraint.

Failure modes:
    - IntegrityError if a second pooled row is inserted for the same
      (tenant, item) outside the upsert path.

Audit relevance:
    transaction_history is the single source of truth.  current_inventory
    is a materialized view that can be dropped and rebuilt at any time.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, LedgerId

POOLED_LOCATION_PREDICATE = "location_id IS NULL"


class LedgerEntryModel(Base):
    """
    One restock/deplete (or audit-only) ledger row.

    Contract:
        Written, edited and deleted by the CRUD layer only.  The core reads
        these rows and never mutates them.

    Non-goals:
        - No running balances are stored here; state is derived by replay.
    """

    __tablename__ = "transaction_history"

    __table_args__ = (
        # Query: one bucket in replay order
        Index(
            "idx_transaction_history_bucket_order",
            "tenant_id",
            "item_type",
            "location_id",
            "transaction_date",
            "id",
        ),
        # Query: distinct item types per tenant (rebuild)
        Index("idx_transaction_history_tenant_item", "tenant_id", "item_type"),
    )

    id: Mapped[int] = mapped_column(LedgerId, primary_key=True, autoincrement=True)

    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)

    item_type: Mapped[str] = mapped_column(String(200), nullable=False)

    # NULL is the pooled, location-unassigned bucket
    location_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # May be backdated or edited after the fact
    occurred_at: Mapped[datetime] = mapped_column(
        "transaction_date",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntryModel {self.id} {self.transaction_type} "
            f"{self.item_type}@{self.location_id} qty={self.quantity}>"
        )


class InventoryStateModel(Base):
    """
    Derived inventory figures for one (tenant, item, location) bucket.

    Contract:
        Owned by the recalculation orchestrator; every write is a full
        upsert of freshly replayed figures.

    Guarantees:
        - avg_price is written in the same statement as quantity and
          total_cost, computed from that pair.
    """

    __tablename__ = "current_inventory"

    __table_args__ = (
        UniqueConstraint(
            "item_type",
            "tenant_id",
            "location_id",
            name="uq_current_inventory_location",
        ),
        Index(
            "uq_current_inventory_pooled",
            "item_type",
            "tenant_id",
            unique=True,
            postgresql_where=text(POOLED_LOCATION_PREDICATE),
            sqlite_where=text(POOLED_LOCATION_PREDICATE),
        ),
    )

    id: Mapped[int] = mapped_column(LedgerId, primary_key=True, autoincrement=True)

    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)

    item_type: Mapped[str] = mapped_column(String(200), nullable=False)

    location_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="kg")

    avg_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryStateModel {self.item_type}@{self.location_id} "
            f"qty={self.quantity} cost={self.total_cost}>"
        )
