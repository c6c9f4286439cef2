"""
inventory_services -- Package init and public API.

Responsibility:
    Orchestration that composes the pure costing engine
    (inventory_engines/) with the tenant-scoped ledger store.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        inventory_services/ -> inventory_engines/  (allowed)
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_services/ -> inventory_config/   (allowed)
        inventory_engines/  -> inventory_services/ (FORBIDDEN)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from inventory_config.bridges import build_retry_policy, build_session_settings
from inventory_config.settings import LedgerSettings
from inventory_kernel.db.tenant_executor import TenantTransactionExecutor
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_services.recalculation_orchestrator import (
    ALL_LOCATIONS,
    RecalculationOrchestrator,
)


def build_orchestrator(
    session_factory: sessionmaker[Session],
    settings: LedgerSettings,
) -> RecalculationOrchestrator:
    """Wire executor -> store -> orchestrator from settings."""
    executor = TenantTransactionExecutor(
        session_factory,
        retry_policy=build_retry_policy(settings),
        session_settings=build_session_settings(settings),
    )
    store = LedgerStore(executor, fallback_unit=settings.fallback_unit)
    return RecalculationOrchestrator(store)


__all__ = [
    "ALL_LOCATIONS",
    "RecalculationOrchestrator",
    "build_orchestrator",
]
