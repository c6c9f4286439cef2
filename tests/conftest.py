"""
Pytest fixtures for the inventory ledger test suite.

Provides:
- An in-memory SQLite database per test (tables created from the ORM models)
- Tenant executor / ledger store / orchestrator wired to that database
- A ledger-entry factory standing in for the CRUD layer
- Structured-log capture

Environment Variables:
- DATABASE_URL: a postgresql:// URL enables the tests marked ``postgres``
  (row-level security and session pinning against a real server).  Without
  it those tests are skipped.
"""

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_engines.costing import replay
from inventory_kernel.db.base import Base
from inventory_kernel.db.tenant_executor import RetryPolicy, TenantTransactionExecutor
from inventory_kernel.domain.ledger import LedgerEntry, TransactionType
from inventory_kernel.domain.tenant import TenantContext
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.models.ledger import LedgerEntryModel
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_services.recalculation_orchestrator import RecalculationOrchestrator

TENANT_A = "11111111-1111-1111-1111-111111111111"
TENANT_B = "22222222-2222-2222-2222-222222222222"

BASE_TIME = datetime(2024, 3, 1, 8, 0, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.recalculate(...)
            logs = captured_logs()
            assert any(r["message"] == "recalculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (DATABASE_URL)"
    )


def get_postgres_url() -> str | None:
    url = os.environ.get("DATABASE_URL", "")
    return url if url.startswith("postgresql") else None


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with all tables."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the executor (no real sleeping)."""
    return []


@pytest.fixture
def executor(session_factory, sleeps):
    return TenantTransactionExecutor(
        session_factory,
        retry_policy=RetryPolicy(attempts=3, base_delay_seconds=0.05),
        sleep=sleeps.append,
    )


@pytest.fixture
def store(executor):
    return LedgerStore(executor)


@pytest.fixture
def orchestrator(store):
    return RecalculationOrchestrator(store)


@pytest.fixture
def tenant_a() -> TenantContext:
    return TenantContext(tenant_id=TENANT_A, role="admin")


@pytest.fixture
def tenant_b() -> TenantContext:
    return TenantContext(tenant_id=TENANT_B, role="user")


# =============================================================================
# Ledger data fixtures
# =============================================================================


@pytest.fixture
def add_entry(session_factory):
    """
    Insert a transaction_history row the way the CRUD layer would.

    Returns the new row id.  ``minutes`` offsets occurred_at from BASE_TIME;
    pass ``occurred_at`` to pin an exact timestamp.
    """

    def _add(
        tenant_id: str,
        item_type: str,
        transaction_type: str,
        quantity: str | Decimal,
        total_cost: str | Decimal = "0",
        location_id: str | None = None,
        minutes: int = 0,
        occurred_at: datetime | None = None,
        unit: str | None = None,
    ) -> int:
        row = LedgerEntryModel(
            tenant_id=tenant_id,
            item_type=item_type,
            location_id=location_id,
            transaction_type=transaction_type,
            quantity=Decimal(quantity),
            total_cost=Decimal(total_cost),
            unit=unit,
            occurred_at=occurred_at or BASE_TIME + timedelta(minutes=minutes),
        )
        with session_factory() as session, session.begin():
            session.add(row)
            session.flush()
            return row.id

    return _add


@pytest.fixture
def update_entry(session_factory):
    """Edit a ledger row in place (CRUD-layer correction)."""

    def _update(entry_id: int, **values) -> None:
        with session_factory() as session, session.begin():
            row = session.get(LedgerEntryModel, entry_id)
            for key, value in values.items():
                setattr(row, key, value)

    return _update


@pytest.fixture
def delete_entry(session_factory):
    def _delete(entry_id: int) -> None:
        with session_factory() as session, session.begin():
            session.delete(session.get(LedgerEntryModel, entry_id))

    return _delete


def make_entry(
    entry_id: int,
    transaction_type: TransactionType | str,
    quantity: str,
    total_cost: str = "0",
    minutes: int = 0,
    item_type: str = "Fertilizer-X",
    location_id: str | None = None,
    tenant_id: str = TENANT_A,
) -> LedgerEntry:
    """Domain LedgerEntry for pure engine tests."""
    return LedgerEntry(
        id=entry_id,
        tenant_id=tenant_id,
        item_type=item_type,
        location_id=location_id,
        transaction_type=TransactionType.parse(transaction_type),
        quantity=Decimal(quantity),
        total_cost=Decimal(total_cost),
        occurred_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def replay_fn():
    return replay
