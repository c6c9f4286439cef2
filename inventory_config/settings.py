"""
Settings schema (``inventory_config.settings``).

Frozen dataclass holding every runtime knob of the ledger core.  Built only
by ``inventory_config.loader``; consumers receive it from
``inventory_config.get_active_settings()``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for the tenant executor, store and engine setup."""

    database_url: str
    pool_size: int = 20
    max_overflow: int = 10
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 0.2
    session_timezone: str = "UTC"
    statement_timeout_ms: int | None = None
    fallback_unit: str = "kg"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url is required")
        if self.retry_attempts < 1:
            raise ValueError(
                f"retry_attempts must be >= 1, got {self.retry_attempts}"
            )
        if self.retry_base_delay_seconds < 0:
            raise ValueError(
                "retry_base_delay_seconds must be >= 0, "
                f"got {self.retry_base_delay_seconds}"
            )
        if self.statement_timeout_ms is not None and self.statement_timeout_ms <= 0:
            raise ValueError(
                f"statement_timeout_ms must be positive, got {self.statement_timeout_ms}"
            )
        if not self.fallback_unit:
            raise ValueError("fallback_unit must be non-empty")
