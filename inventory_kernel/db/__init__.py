"""Database layer - engine, base class, tenant executor, RLS policies."""

from inventory_kernel.db.base import Base
from inventory_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
)
from inventory_kernel.db.tenant_executor import (
    RetryPolicy,
    SessionSettings,
    TenantTransactionExecutor,
    is_transient_error,
    pin_session_variables,
)

__all__ = [
    "Base",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "RetryPolicy",
    "SessionSettings",
    "TenantTransactionExecutor",
    "is_transient_error",
    "pin_session_variables",
]
