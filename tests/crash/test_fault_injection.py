"""
Fault injection for the recalculation write path.

Simulates connection loss at the moment the state row is upserted and
verifies that the previously stored state is left untouched, that a
transient blip is absorbed by the retry loop, and that data errors are
surfaced without retry.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from inventory_kernel.domain.ledger import Bucket
from inventory_kernel.exceptions import ConnectionInterruptedError
from inventory_kernel.services.ledger_store import LedgerStore
from tests.conftest import TENANT_A

ITEM = "Fertilizer-X"


def _lost_connection(*args, **kwargs):
    raise OperationalError(
        "INSERT INTO current_inventory", {}, Exception("terminating connection due to administrator command")
    )


@pytest.fixture
def seeded(orchestrator, store, add_entry, tenant_a):
    """A pooled bucket with a committed state row of 10 units / 100."""
    add_entry(TENANT_A, ITEM, "restock", "10", "100")
    orchestrator.recalculate(tenant_a, ITEM, None)
    add_entry(TENANT_A, ITEM, "restock", "10", "300", minutes=1)
    return store


class TestUpsertFailure:

    def test_interrupted_upsert_keeps_previous_state(
        self, orchestrator, seeded, sleeps, tenant_a, monkeypatch
    ):
        monkeypatch.setattr(LedgerStore, "_upsert_pooled", _lost_connection)

        with pytest.raises(ConnectionInterruptedError) as exc_info:
            orchestrator.recalculate(tenant_a, ITEM, None)

        assert exc_info.value.attempts == 3
        assert len(sleeps) == 2
        state = seeded.fetch_inventory_state(tenant_a, ITEM, None)
        assert (state.quantity, state.total_cost) == (Decimal("10"), Decimal("100"))

    def test_transient_blip_is_absorbed(
        self, orchestrator, seeded, sleeps, tenant_a, monkeypatch
    ):
        original = LedgerStore._upsert_pooled
        calls = []

        def _flaky(self, session, context, state):
            calls.append(1)
            if len(calls) == 1:
                _lost_connection()
            return original(self, session, context, state)

        monkeypatch.setattr(LedgerStore, "_upsert_pooled", _flaky)

        (state,) = orchestrator.recalculate(tenant_a, ITEM, None)

        assert len(calls) == 2
        assert len(sleeps) == 1
        assert (state.quantity, state.total_cost) == (Decimal("20"), Decimal("400"))
        stored = seeded.fetch_inventory_state(tenant_a, ITEM, None)
        assert (stored.quantity, stored.total_cost) == (Decimal("20"), Decimal("400"))

    def test_data_error_not_retried(self, orchestrator, seeded, sleeps, tenant_a, monkeypatch):
        def _constraint_violation(*args, **kwargs):
            raise IntegrityError("INSERT", {}, Exception("violates check constraint"))

        monkeypatch.setattr(LedgerStore, "_upsert_pooled", _constraint_violation)

        with pytest.raises(IntegrityError):
            orchestrator.recalculate(tenant_a, ITEM, None)

        assert sleeps == []
        state = seeded.fetch_inventory_state(tenant_a, ITEM, None)
        assert state.quantity == Decimal("10")

    def test_interruption_logged(self, orchestrator, seeded, tenant_a, monkeypatch, captured_logs):
        monkeypatch.setattr(LedgerStore, "_upsert_pooled", _lost_connection)

        with pytest.raises(ConnectionInterruptedError):
            orchestrator.recalculate(tenant_a, ITEM, None)

        records = [
            r for r in captured_logs() if r["message"] == "tenant_transaction_interrupted"
        ]
        assert len(records) == 1
        assert records[0]["tenant_id"] == TENANT_A
        assert records[0]["attempts"] == 3


class TestPartialBatch:

    def test_earlier_buckets_stay_committed(
        self, orchestrator, store, add_entry, tenant_a, monkeypatch
    ):
        add_entry(TENANT_A, ITEM, "restock", "5", "50", location_id="WH-1")
        add_entry(TENANT_A, ITEM, "restock", "7", "70")
        monkeypatch.setattr(LedgerStore, "_upsert_pooled", _lost_connection)

        with pytest.raises(ConnectionInterruptedError):
            orchestrator.recalculate_affected(
                tenant_a, [Bucket(ITEM, "WH-1"), Bucket(ITEM, None)]
            )

        scoped = store.fetch_inventory_state(tenant_a, ITEM, "WH-1")
        assert scoped.quantity == Decimal("5")
        assert store.fetch_inventory_state(tenant_a, ITEM, None) is None

    def test_rerun_heals_after_failure(
        self, orchestrator, store, add_entry, tenant_a, monkeypatch
    ):
        add_entry(TENANT_A, ITEM, "restock", "7", "70")
        with monkeypatch.context() as patch:
            patch.setattr(LedgerStore, "_upsert_pooled", _lost_connection)
            with pytest.raises(ConnectionInterruptedError):
                orchestrator.recalculate(tenant_a, ITEM)

        orchestrator.recalculate(tenant_a, ITEM)

        assert store.fetch_inventory_state(tenant_a, ITEM, None).quantity == Decimal("7")
