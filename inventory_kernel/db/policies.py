"""
Module: inventory_kernel.db.policies
Responsibility: Installing, removing and inspecting the PostgreSQL row-level
    security policies that key tenant visibility off the session variables
    pinned by the tenant executor.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, domain/, or outer layers.

Invariants enforced:
    - With policies installed, a statement on transaction_history or
      current_inventory only sees and writes rows whose tenant_id equals
      current_setting('app.tenant_id', true).  A transaction that was not
      pinned sees no rows at all (current_setting returns NULL).

Failure modes:
    - ProgrammingError if the tables do not exist yet (call after
      create_tables()).
    - Non-PostgreSQL engines: install/uninstall are logged no-ops.

Audit relevance:
    Policies are the database-level complement to the explicit tenant_id
    predicates the ledger store adds to every query.  Both must be bypassed
    to read another tenant's rows.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.policies")

POLICY_NAME = "tenant_isolation"

TENANT_TABLES = (
    "transaction_history",
    "current_inventory",
)


def _install_sql(table: str) -> str:
    return f"""
        ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;
        ALTER TABLE {table} FORCE ROW LEVEL SECURITY;
        DROP POLICY IF EXISTS {POLICY_NAME} ON {table};
        CREATE POLICY {POLICY_NAME} ON {table}
            USING (tenant_id = current_setting('app.tenant_id', true))
            WITH CHECK (tenant_id = current_setting('app.tenant_id', true));
    """


def _uninstall_sql(table: str) -> str:
    return f"""
        DROP POLICY IF EXISTS {POLICY_NAME} ON {table};
        ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY;
        ALTER TABLE {table} DISABLE ROW LEVEL SECURITY;
    """


def install_tenant_policies(engine: Engine) -> None:
    """Enable RLS and (re)create the tenant_isolation policy on each table."""
    if engine.dialect.name != "postgresql":
        logger.info(
            "tenant_policies_skipped",
            extra={"dialect": engine.dialect.name},
        )
        return

    with engine.begin() as conn:
        for table in TENANT_TABLES:
            conn.execute(text(_install_sql(table)))
    logger.info("tenant_policies_installed", extra={"tables": list(TENANT_TABLES)})


def uninstall_tenant_policies(engine: Engine) -> None:
    """Drop the tenant_isolation policy and disable RLS on each table."""
    if engine.dialect.name != "postgresql":
        return

    with engine.begin() as conn:
        for table in TENANT_TABLES:
            conn.execute(text(_uninstall_sql(table)))
    logger.info("tenant_policies_uninstalled", extra={"tables": list(TENANT_TABLES)})


def tenant_policies_installed(engine: Engine) -> bool:
    """True if every tenant table carries the tenant_isolation policy."""
    if engine.dialect.name != "postgresql":
        return False

    check_sql = text(
        """
        SELECT COUNT(*)
        FROM pg_policies
        WHERE policyname = :policy
          AND tablename = ANY(:tables)
        """
    )
    with engine.connect() as conn:
        count = conn.execute(
            check_sql,
            {"policy": POLICY_NAME, "tables": list(TENANT_TABLES)},
        ).scalar()
    return count == len(TENANT_TABLES)
