"""
inventory_services.recalculation_orchestrator -- Rebuild inventory state from the ledger.

Responsibility:
    Given an item (and optionally one bucket), resolve the affected
    (item, location) buckets, replay each bucket's full ledger history with
    the costing engine and upsert the resulting inventory state.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    The only public entry point of the ledger core; called synchronously by
    ledger-mutating request handlers after every insert/update/delete.

Invariants enforced:
    - Full replay: state is always re-derived from the entire bucket
      history, never patched with a delta, so a stale concurrent overwrite
      heals on the next recalculation of that bucket.
    - Idempotence: recalculating twice with no ledger change writes the
      same row both times.
    - Zeroed pooled bucket: an item with no ledger history still gets an
      explicit pooled row (quantity 0, cost 0) instead of stale data.
    - Explicit tenant scope: every call takes a TenantContext.

Failure modes:
    - ConnectionInterruptedError from the executor when transient failures
      exhaust retries.  The previous state row is left untouched because
      the upsert is a single atomic statement.
    - Data errors from the store propagate unchanged.

Usage:
    orchestrator = RecalculationOrchestrator(store)

    # After inserting a ledger entry at location "WH-1":
    orchestrator.recalculate(context, "Fertilizer-X", "WH-1")

    # After an edit that moved an entry between locations:
    orchestrator.recalculate_affected(context, affected_buckets(before, after))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Final

from inventory_engines.costing import ReplayResult, replay
from inventory_kernel.domain.ledger import (
    Bucket,
    InventoryState,
    LedgerEntry,
    dedupe_buckets,
)
from inventory_kernel.domain.tenant import TenantContext
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.ledger_store import LedgerStore

logger = get_logger("services.recalculation_orchestrator")


class _AllLocations:
    """Sentinel: recompute every bucket the item has ledger entries in."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL_LOCATIONS"


ALL_LOCATIONS: Final = _AllLocations()

ReplayFn = Callable[[Iterable[LedgerEntry]], ReplayResult]


class RecalculationOrchestrator:
    """Resolve affected buckets, replay each one and persist the result.

    Contract:
        Receives a LedgerStore and optionally a replay function (defaults to
        the weighted-average costing engine).

    Guarantees:
        - Every bucket is replayed from its complete, ordered history.
        - Returned states are exactly what was upserted.

    Non-goals:
        - Does NOT mutate ledger entries.
        - Does NOT decide which buckets a CRUD change touched beyond the
          item/location pairs it is given (see affected_buckets()).
    """

    def __init__(self, store: LedgerStore, replay_fn: ReplayFn = replay):
        self._store = store
        self._replay = replay_fn

    def recalculate(
        self,
        context: TenantContext,
        item_type: str,
        location_id: str | None | _AllLocations = ALL_LOCATIONS,
    ) -> tuple[InventoryState, ...]:
        """Recompute one bucket, or every bucket of the item.

        Args:
            context: Tenant scope.
            item_type: Item whose state to rebuild.
            location_id: A location id, None for the pooled bucket, or
                ALL_LOCATIONS (default) for every bucket with ledger history.

        Returns:
            The upserted states, one per bucket, pooled bucket first.
        """
        if not item_type:
            raise ValueError("item_type is required")

        if location_id is ALL_LOCATIONS:
            locations = self._store.fetch_distinct_locations(context, item_type)
            if not locations:
                # No history: write an explicit zeroed pooled row
                locations = (None,)
        else:
            locations = (location_id,)

        states = tuple(
            self.recalculate_bucket(context, item_type, loc) for loc in locations
        )

        logger.info(
            "recalculation_completed",
            extra={
                "item_type": item_type,
                "bucket_count": len(states),
                "all_locations": location_id is ALL_LOCATIONS,
            },
        )
        return states

    def recalculate_bucket(
        self,
        context: TenantContext,
        item_type: str,
        location_id: str | None,
    ) -> InventoryState:
        """Replay one bucket's full history and upsert its state."""
        with LogContext.bind(item_type=item_type, location_id=location_id):
            entries = self._store.fetch_ledger_entries(context, item_type, location_id)
            result = self._replay(entries)
            unit = self._store.fetch_current_unit(context, item_type, location_id)

            state = InventoryState(
                tenant_id=context.tenant_id,
                item_type=item_type,
                location_id=location_id,
                quantity=result.quantity,
                unit=unit,
                total_cost=result.total_cost,
            )
            self._store.upsert_inventory_state(context, state)

            logger.info(
                "bucket_recalculated",
                extra={
                    "entry_count": len(entries),
                    "entries_applied": result.entries_applied,
                    "anomaly_count": len(result.anomalies),
                    "quantity": state.quantity,
                    "total_cost": state.total_cost,
                },
            )
            return state

    def recalculate_affected(
        self,
        context: TenantContext,
        buckets: Iterable[Bucket],
        max_workers: int | None = None,
    ) -> tuple[InventoryState, ...]:
        """Recompute the buckets a ledger mutation touched.

        Duplicates are dropped, order is preserved.  With ``max_workers`` > 1
        the buckets run concurrently, each in its own tenant transactions.
        """
        unique = dedupe_buckets(buckets)
        if not unique:
            return ()

        if max_workers is None or max_workers <= 1 or len(unique) == 1:
            return tuple(
                self.recalculate_bucket(context, b.item_type, b.location_id)
                for b in unique
            )

        with ThreadPoolExecutor(max_workers=min(max_workers, len(unique))) as pool:
            futures = [
                pool.submit(self.recalculate_bucket, context, b.item_type, b.location_id)
                for b in unique
            ]
            return tuple(f.result() for f in futures)

    def rebuild_tenant(self, context: TenantContext) -> tuple[InventoryState, ...]:
        """Recompute every item of the tenant from the ledger.

        Buckets that only exist in the state table (their ledger entries
        were deleted or moved) are recomputed too, which zeroes them.
        """
        item_types = self._store.fetch_item_types(context)
        states: list[InventoryState] = []
        for item_type in item_types:
            ledger_locations = self._store.fetch_distinct_locations(context, item_type)
            state_locations = self._store.fetch_state_locations(context, item_type)
            buckets = [Bucket(item_type, loc) for loc in ledger_locations]
            buckets.extend(Bucket(item_type, loc) for loc in state_locations)
            if not buckets:
                buckets.append(Bucket(item_type, None))
            states.extend(self.recalculate_affected(context, buckets))

        logger.info(
            "tenant_rebuild_completed",
            extra={"item_count": len(item_types), "bucket_count": len(states)},
        )
        return tuple(states)
