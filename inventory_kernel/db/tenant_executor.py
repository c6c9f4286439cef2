"""
Module: inventory_kernel.db.tenant_executor
Responsibility: Run data operations inside one database transaction that is
    pinned to a single tenant, retrying the whole transaction on transient
    infrastructure failures.
Architecture position: Kernel > DB.  May import from domain/tenant.py,
    exceptions.py and logging_config.py.  This is the tenant-isolation
    boundary: no other component issues a query outside of it.

Invariants enforced:
    - Pinning first: set_config('TimeZone'), set_config('app.tenant_id')
      and set_config('app.role') (plus statement_timeout when configured)
      are the first statements of every transaction, all transaction-local
      (is_local = true), so a pooled connection reused by another tenant
      never observes stale scope.
    - Atomicity: every attempt runs in a fresh session; any failure rolls
      the transaction back before the next attempt or before the error
      leaves this module.
    - Bounded retry: transient failures retry the entire transaction
      (including re-pinning) up to RetryPolicy.attempts total attempts
      with linear backoff attempt * base_delay_seconds.
    - Data errors (constraint violations, malformed SQL, permission
      errors, domain errors) are never retried and propagate unchanged.

Failure modes:
    - ConnectionInterruptedError when transient failures exhaust the retry
      budget; the last cause is chained as __cause__.
    - Any non-transient exception from the caller's operations.

Audit relevance:
    Every retry, failure and interruption is logged with tenant_id bound in
    LogContext.  Row-level security policies (db/policies.py) key off the
    session variables pinned here.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.base import Executable

from inventory_kernel.domain.tenant import TenantContext
from inventory_kernel.exceptions import ConnectionInterruptedError
from inventory_kernel.logging_config import LogContext, get_logger

logger = get_logger("db.tenant_executor")

T = TypeVar("T")

Operation = Callable[[Session], Any] | Executable

# Lower-cased fragments of driver messages for connectivity, timeout and
# cancellation failures.
_TRANSIENT_MARKERS = (
    "connection reset",
    "connection refused",
    "connection already closed",
    "server closed the connection",
    "closed the connection unexpectedly",
    "terminating connection",
    "could not connect",
    "ssl connection has been closed",
    "broken pipe",
    "canceling statement",
    "timeout",
    "timed out",
    "aborted",
    "fetch failed",
)

_PIN_SQL = text("SELECT set_config(:name, :value, true)")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry budget for transient failures.

    ``attempts`` counts every try, the first one included.
    """

    attempts: int = 3
    base_delay_seconds: float = 0.2

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.base_delay_seconds < 0:
            raise ValueError(
                f"base_delay_seconds must be >= 0, got {self.base_delay_seconds}"
            )

    def backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return attempt * self.base_delay_seconds


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """Transaction-local session variables pinned besides tenant and role."""

    timezone: str = "UTC"
    statement_timeout_ms: int | None = None


def is_transient_error(exc: BaseException) -> bool:
    """Classify an exception as transient infrastructure flakiness.

    Transient: pool/connection disconnects, pool checkout timeouts, builtin
    ConnectionError/TimeoutError, DBAPI errors that invalidated the
    connection, and Operational/Interface errors whose driver message names
    a connection, timeout or cancellation problem.
    """
    if isinstance(exc, (DisconnectionError, PoolTimeoutError)):
        return True
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        if isinstance(exc, (OperationalError, InterfaceError)):
            source = exc.orig if exc.orig is not None else exc
            message = str(source).lower()
            return any(marker in message for marker in _TRANSIENT_MARKERS)
    return False


def pin_session_variables(
    session: Session,
    context: TenantContext,
    settings: SessionSettings | None = None,
) -> list[tuple[str, str]]:
    """Pin transaction-local timezone, tenant and role for this transaction.

    Preconditions: a transaction is open on ``session``.
    Postconditions: on PostgreSQL, current_setting('app.tenant_id') and
        current_setting('app.role') return the context values until the
        transaction ends.  Other dialects have no session variables; the
        call is a no-op there and returns an empty list.

    Returns:
        The (name, value) pairs that were pinned, in order.
    """
    settings = settings or SessionSettings()
    dialect = session.get_bind().dialect.name
    if dialect != "postgresql":
        logger.debug("session_pinning_skipped", extra={"dialect": dialect})
        return []

    pinned = [
        ("TimeZone", settings.timezone),
        ("app.tenant_id", context.tenant_id),
        ("app.role", context.role),
    ]
    if settings.statement_timeout_ms is not None:
        pinned.append(("statement_timeout", str(settings.statement_timeout_ms)))

    for name, value in pinned:
        session.execute(_PIN_SQL, {"name": name, "value": value})
    return pinned


class TenantTransactionExecutor:
    """
    Tenant-pinned, retrying transaction runner.

    Contract:
        ``run_all(context, operations)`` executes the operations in order in
        one transaction scoped to ``context`` and returns their results.
        ``run(context, work)`` is the single-operation form.

    Guarantees:
        - Pinning, atomicity and bounded retry (see module docstring).
        - Statement results are materialized before commit, so nothing
          returned depends on an open cursor.

    Non-goals:
        - Does NOT hold a session across calls; each call owns its sessions.
        - Does NOT decide what to query; callers pass the operations.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        retry_policy: RetryPolicy | None = None,
        session_settings: SessionSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._retry = retry_policy or RetryPolicy()
        self._session_settings = session_settings or SessionSettings()
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def run(self, context: TenantContext, work: Callable[[Session], T]) -> T:
        """Run one operation in a tenant-pinned transaction."""
        return self.run_all(context, [work])[0]

    def run_all(
        self,
        context: TenantContext,
        operations: Iterable[Operation],
    ) -> list[Any]:
        """Run operations in order in one tenant-pinned transaction.

        Raises:
            ConnectionInterruptedError: transient failures exhausted retries.
            Exception: any non-transient failure, unchanged.
        """
        ops = list(operations)
        if not isinstance(context, TenantContext):
            raise TypeError(
                f"context must be a TenantContext, got {type(context).__name__}"
            )

        with LogContext.bind(tenant_id=context.tenant_id, role=context.role):
            if context.is_fallback:
                logger.warning("fallback_tenant_transaction")

            attempt = 0
            while True:
                attempt += 1
                try:
                    return self._run_once(context, ops)
                except Exception as exc:
                    if not is_transient_error(exc):
                        logger.warning(
                            "tenant_transaction_failed",
                            extra={
                                "attempt": attempt,
                                "error_type": type(exc).__name__,
                            },
                        )
                        raise

                    if attempt >= self._retry.attempts:
                        logger.error(
                            "tenant_transaction_interrupted",
                            extra={
                                "attempts": attempt,
                                "error_type": type(exc).__name__,
                            },
                        )
                        raise ConnectionInterruptedError(
                            context.tenant_id, attempt, exc
                        ) from exc

                    delay = self._retry.backoff(attempt)
                    logger.warning(
                        "tenant_transaction_retry",
                        extra={
                            "attempt": attempt,
                            "max_attempts": self._retry.attempts,
                            "delay_seconds": delay,
                            "error_type": type(exc).__name__,
                        },
                    )
                    self._sleep(delay)

    def _run_once(
        self,
        context: TenantContext,
        operations: Sequence[Operation],
    ) -> list[Any]:
        session = self._session_factory()
        try:
            with session.begin():
                pin_session_variables(session, context, self._session_settings)
                results = [self._execute(session, op) for op in operations]
            return results
        finally:
            session.close()

    @staticmethod
    def _execute(session: Session, operation: Operation) -> Any:
        if isinstance(operation, Executable):
            result = session.execute(operation)
            if result.returns_rows:
                return result.mappings().all()
            return result.rowcount
        if callable(operation):
            return operation(session)
        raise TypeError(
            f"operation must be a statement or a callable, got {type(operation).__name__}"
        )
