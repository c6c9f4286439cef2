"""
LedgerStore -- tenant-scoped reads of the ledger and upserts of derived state.

Responsibility:
    Thin data-access layer over transaction_history and current_inventory.
    Every public method takes the TenantContext explicitly and runs through
    TenantTransactionExecutor, which pins the tenant session variables first.

Architecture position:
    Kernel > Services -- imperative shell over db/ and models/.
    Called by the recalculation orchestrator (inventory_services).

Invariants enforced:
    - Every statement carries an explicit tenant_id predicate (or
      tenant_id value on insert) taken from the context, in addition to
      the RLS policies keyed on the pinned session variables.
    - fetch_ledger_entries returns entries in the total order
      (occurred_at ASC, id ASC).
    - upsert_inventory_state has two explicit conflict paths:
      (item_type, tenant_id, location_id) for location-scoped rows and
      (item_type, tenant_id) WHERE location_id IS NULL for the pooled row.

Failure modes:
    - ConnectionInterruptedError (from the executor) on exhausted transient
      failures.
    - IntegrityError / ProgrammingError propagate unchanged.
    - None for unreadable ledger rows: a row with an unknown transaction
      type or a negative quantity/cost is left out of the bucket and logged
      as ledger_entry_skipped, so one bad row never blocks the recalculation.

Usage:
    store = LedgerStore(executor, fallback_unit="kg")
    entries = store.fetch_ledger_entries(context, "Fertilizer-X", None)
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select, text, union
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from inventory_kernel.db.tenant_executor import TenantTransactionExecutor
from inventory_kernel.domain.ledger import (
    InventoryState,
    LedgerEntry,
    TransactionType,
)
from inventory_kernel.exceptions import (
    InvalidLedgerEntryError,
    InvalidTransactionTypeError,
)
from inventory_kernel.domain.tenant import TenantContext
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.ledger import (
    POOLED_LOCATION_PREDICATE,
    InventoryStateModel,
    LedgerEntryModel,
)

logger = get_logger("services.ledger_store")

DEFAULT_UNIT = "kg"

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _bucket_predicate(column, location_id: str | None):
    """location_id IS NOT DISTINCT FROM :location_id."""
    if location_id is None:
        return column.is_(None)
    return column == location_id


class LedgerStore:
    """
    Tenant-scoped ledger reads and inventory-state upserts.

    Contract:
        Each public method is one tenant-pinned transaction.

    Guarantees:
        - Tenant predicate, replay order and single-row upsert (see module docstring).
        - Returned values are frozen domain objects, never ORM rows.

    Non-goals:
        - Does NOT create, edit or delete ledger entries (CRUD layer owns them).
        - Does NOT compute inventory figures (costing engine does).
    """

    def __init__(
        self,
        executor: TenantTransactionExecutor,
        fallback_unit: str = DEFAULT_UNIT,
    ):
        self._executor = executor
        self._fallback_unit = fallback_unit

    @property
    def executor(self) -> TenantTransactionExecutor:
        return self._executor

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def fetch_ledger_entries(
        self,
        context: TenantContext,
        item_type: str,
        location_id: str | None,
    ) -> tuple[LedgerEntry, ...]:
        """Ledger entries of one bucket ordered by (occurred_at, id)."""
        stmt = (
            select(LedgerEntryModel)
            .where(
                LedgerEntryModel.tenant_id == context.tenant_id,
                LedgerEntryModel.item_type == item_type,
                _bucket_predicate(LedgerEntryModel.location_id, location_id),
            )
            .order_by(LedgerEntryModel.occurred_at.asc(), LedgerEntryModel.id.asc())
        )

        def _work(session: Session) -> tuple[LedgerEntry, ...]:
            rows = session.execute(stmt).scalars().all()
            converted = (self._to_entry(row) for row in rows)
            return tuple(entry for entry in converted if entry is not None)

        entries = self._executor.run(context, _work)
        logger.debug(
            "ledger_entries_fetched",
            extra={
                "item_type": item_type,
                "location_id": location_id,
                "entry_count": len(entries),
            },
        )
        return entries

    def fetch_distinct_locations(
        self,
        context: TenantContext,
        item_type: str,
    ) -> tuple[str | None, ...]:
        """Location ids (None = pooled) with any ledger entries for the item."""
        stmt = (
            select(LedgerEntryModel.location_id)
            .where(
                LedgerEntryModel.tenant_id == context.tenant_id,
                LedgerEntryModel.item_type == item_type,
            )
            .distinct()
        )

        def _work(session: Session) -> tuple[str | None, ...]:
            values = session.execute(stmt).scalars().all()
            # Pooled bucket first, then locations alphabetically
            return tuple(sorted(set(values), key=lambda v: (v is not None, v or "")))

        return self._executor.run(context, _work)

    def fetch_state_locations(
        self,
        context: TenantContext,
        item_type: str,
    ) -> tuple[str | None, ...]:
        """Location ids (None = pooled) that already have a state row."""
        stmt = select(InventoryStateModel.location_id).where(
            InventoryStateModel.tenant_id == context.tenant_id,
            InventoryStateModel.item_type == item_type,
        )

        def _work(session: Session) -> tuple[str | None, ...]:
            values = session.execute(stmt).scalars().all()
            return tuple(sorted(set(values), key=lambda v: (v is not None, v or "")))

        return self._executor.run(context, _work)

    def fetch_current_unit(
        self,
        context: TenantContext,
        item_type: str,
        location_id: str | None,
    ) -> str:
        """Unit of the existing state row, else the fallback unit."""
        stmt = (
            select(InventoryStateModel.unit)
            .where(
                InventoryStateModel.tenant_id == context.tenant_id,
                InventoryStateModel.item_type == item_type,
                _bucket_predicate(InventoryStateModel.location_id, location_id),
            )
            .limit(1)
        )
        unit = self._executor.run(
            context, lambda session: session.execute(stmt).scalar_one_or_none()
        )
        return str(unit) if unit else self._fallback_unit

    def fetch_inventory_state(
        self,
        context: TenantContext,
        item_type: str,
        location_id: str | None,
    ) -> InventoryState | None:
        """Stored state row for one bucket, or None."""
        stmt = select(InventoryStateModel).where(
            InventoryStateModel.tenant_id == context.tenant_id,
            InventoryStateModel.item_type == item_type,
            _bucket_predicate(InventoryStateModel.location_id, location_id),
        )

        def _work(session: Session) -> InventoryState | None:
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                return None
            return InventoryState(
                tenant_id=row.tenant_id,
                item_type=row.item_type,
                location_id=row.location_id,
                quantity=Decimal(row.quantity),
                unit=row.unit,
                total_cost=Decimal(row.total_cost),
            )

        return self._executor.run(context, _work)

    def fetch_item_types(self, context: TenantContext) -> tuple[str, ...]:
        """Item types present in the tenant's ledger or state table."""
        stmt = union(
            select(LedgerEntryModel.item_type).where(
                LedgerEntryModel.tenant_id == context.tenant_id
            ),
            select(InventoryStateModel.item_type).where(
                InventoryStateModel.tenant_id == context.tenant_id
            ),
        )

        def _work(session: Session) -> tuple[str, ...]:
            return tuple(sorted(session.execute(stmt).scalars().all()))

        return self._executor.run(context, _work)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def upsert_inventory_state(
        self,
        context: TenantContext,
        state: InventoryState,
    ) -> InventoryState:
        """Insert or overwrite the state row of ``state``'s bucket.

        Preconditions: state.tenant_id == context.tenant_id.
        Postconditions: exactly one row exists for the bucket and it holds
            state's quantity, unit, total_cost and derived avg_price.
        """
        if state.tenant_id != context.tenant_id:
            raise ValueError(
                f"state tenant {state.tenant_id} does not match context "
                f"tenant {context.tenant_id}"
            )

        def _work(session: Session) -> None:
            if state.location_id is None:
                self._upsert_pooled(session, context, state)
            else:
                self._upsert_scoped(session, context, state)

        self._executor.run(context, _work)
        logger.info(
            "inventory_state_upserted",
            extra={
                "item_type": state.item_type,
                "location_id": state.location_id,
                "quantity": state.quantity,
                "total_cost": state.total_cost,
                "avg_unit_cost": state.avg_unit_cost,
            },
        )
        return state

    def _upsert_scoped(
        self,
        session: Session,
        context: TenantContext,
        state: InventoryState,
    ) -> None:
        insert = self._insert_for(session)
        stmt = insert(InventoryStateModel).values(**self._row_values(context, state))
        stmt = stmt.on_conflict_do_update(
            index_elements=["item_type", "tenant_id", "location_id"],
            set_=self._update_values(state),
        )
        session.execute(stmt)

    def _upsert_pooled(
        self,
        session: Session,
        context: TenantContext,
        state: InventoryState,
    ) -> None:
        insert = self._insert_for(session)
        stmt = insert(InventoryStateModel).values(**self._row_values(context, state))
        stmt = stmt.on_conflict_do_update(
            index_elements=["item_type", "tenant_id"],
            index_where=text(POOLED_LOCATION_PREDICATE),
            set_=self._update_values(state),
        )
        session.execute(stmt)

    @staticmethod
    def _insert_for(session: Session):
        dialect = session.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect]
        except KeyError:
            raise NotImplementedError(
                f"inventory state upsert is not supported on {dialect}"
            ) from None

    @staticmethod
    def _row_values(context: TenantContext, state: InventoryState) -> dict:
        return {
            "tenant_id": context.tenant_id,
            "item_type": state.item_type,
            "location_id": state.location_id,
            "quantity": state.quantity,
            "unit": state.unit,
            "avg_price": state.avg_unit_cost,
            "total_cost": state.total_cost,
        }

    @staticmethod
    def _update_values(state: InventoryState) -> dict:
        return {
            "quantity": state.quantity,
            "unit": state.unit,
            "avg_price": state.avg_unit_cost,
            "total_cost": state.total_cost,
            "updated_at": func.now(),
        }

    @staticmethod
    def _to_entry(row: LedgerEntryModel) -> LedgerEntry | None:
        try:
            return LedgerEntry(
                id=row.id,
                tenant_id=row.tenant_id,
                item_type=row.item_type,
                location_id=row.location_id,
                transaction_type=TransactionType.parse(row.transaction_type),
                quantity=Decimal(row.quantity or 0),
                total_cost=Decimal(row.total_cost or 0),
                occurred_at=row.occurred_at,
            )
        except (InvalidTransactionTypeError, InvalidLedgerEntryError) as exc:
            logger.warning(
                "ledger_entry_skipped",
                extra={
                    "entry_id": row.id,
                    "item_type": row.item_type,
                    "location_id": row.location_id,
                    "transaction_type": row.transaction_type,
                    "reason": exc.code,
                },
            )
            return None
