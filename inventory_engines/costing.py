"""
inventory_engines.costing -- Weighted-average costing replay.

Responsibility:
    Replay the ordered ledger history of one (item, location) bucket into a
    running quantity and cost basis using the moving weighted-average method.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel domain values and logging.
    The stateful orchestration lives in inventory_services/.

Invariants enforced:
    - Non-negativity: quantity >= 0 and total_cost >= 0 after every step.
      Over-depletion is clamped to zero, never raised.
    - Determinism: identical ordered inputs always give identical outputs;
      Decimal arithmetic only, no floats.
    - Derived average: avg_unit_cost is total_cost / quantity (0 when the
      quantity is 0) and is never carried as independent state.

Failure modes:
    - None for well-formed entries.  A deplete larger than the running
      quantity is a semantic anomaly, not an error: it is clamped, recorded
      in ReplayResult.anomalies and logged as depletion_exceeds_available.

Algorithm:
    quantity = 0, total_cost = 0
    RESTOCK: quantity += q; total_cost += c
    DEPLETE: depletion_cost = (total_cost / quantity) * q   (0 if quantity == 0)
             quantity   = max(0, quantity - q)
             total_cost = max(0, total_cost - depletion_cost)
    audit-only types: skipped
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.ledger import LedgerEntry, TransactionType
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.costing")

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class DepletionAnomaly:
    """A deplete that asked for more than the running quantity held."""

    entry_id: int
    requested: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.available


@dataclass(frozen=True, slots=True)
class ReplayResult:
    """
    Outcome of replaying one bucket.

    Guarantees:
        - quantity >= 0 and total_cost >= 0.
        - avg_unit_cost derived from the pair on every access.
    """

    quantity: Decimal = ZERO
    total_cost: Decimal = ZERO
    entries_applied: int = 0
    anomalies: tuple[DepletionAnomaly, ...] = field(default_factory=tuple)

    @property
    def avg_unit_cost(self) -> Decimal:
        if self.quantity > 0:
            return self.total_cost / self.quantity
        return ZERO

    @property
    def has_anomalies(self) -> bool:
        return bool(self.anomalies)


def sort_for_replay(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Order entries by (occurred_at, id), the replay total order."""
    return sorted(entries, key=lambda entry: entry.replay_key)


@traced_engine("costing_replay", "1.0", fingerprint_fields=("entries",))
def replay(entries: Iterable[LedgerEntry]) -> ReplayResult:
    """Replay ordered ledger entries into a quantity and cost basis.

    Preconditions:
        ``entries`` is already ordered by (occurred_at, id) and belongs to a
        single bucket.  The engine does not reorder.

    Postconditions:
        quantity >= 0, total_cost >= 0.
    """
    quantity = ZERO
    total_cost = ZERO
    applied = 0
    anomalies: list[DepletionAnomaly] = []

    for entry in entries:
        if entry.transaction_type == TransactionType.RESTOCK:
            quantity += entry.quantity
            total_cost += entry.total_cost
            applied += 1
            continue

        if entry.transaction_type != TransactionType.DEPLETE:
            continue

        # total_cost * q / quantity == avg * q without rounding the average first
        if quantity > 0:
            depletion_cost = total_cost * entry.quantity / quantity
        else:
            depletion_cost = ZERO

        if entry.quantity > quantity:
            anomaly = DepletionAnomaly(
                entry_id=entry.id,
                requested=entry.quantity,
                available=quantity,
            )
            anomalies.append(anomaly)
            logger.warning(
                "depletion_exceeds_available",
                extra={
                    "entry_id": entry.id,
                    "item_type": entry.item_type,
                    "location_id": entry.location_id,
                    "requested": entry.quantity,
                    "available": quantity,
                },
            )

        quantity = max(ZERO, quantity - entry.quantity)
        total_cost = max(ZERO, total_cost - depletion_cost)
        applied += 1

    return ReplayResult(
        quantity=quantity,
        total_cost=total_cost,
        entries_applied=applied,
        anomalies=tuple(anomalies),
    )
