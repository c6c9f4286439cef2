"""
Config -> Kernel Bridges.

Convert LedgerSettings into kernel-compatible inputs.  These live in
inventory_config (the producer) because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config.bridges import build_retry_policy, build_session_settings

    settings = get_active_settings()
    executor = TenantTransactionExecutor(
        session_factory,
        retry_policy=build_retry_policy(settings),
        session_settings=build_session_settings(settings),
    )
"""

from __future__ import annotations

from inventory_config.settings import LedgerSettings
from inventory_kernel.db.tenant_executor import RetryPolicy, SessionSettings


def build_retry_policy(settings: LedgerSettings) -> RetryPolicy:
    return RetryPolicy(
        attempts=settings.retry_attempts,
        base_delay_seconds=settings.retry_base_delay_seconds,
    )


def build_session_settings(settings: LedgerSettings) -> SessionSettings:
    return SessionSettings(
        timezone=settings.session_timezone,
        statement_timeout_ms=settings.statement_timeout_ms,
    )
