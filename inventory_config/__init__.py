"""
inventory_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the ONLY way to obtain settings at runtime.
    No other component reads the YAML files or the environment directly.

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel MUST NEVER import from
    ``inventory_config``; ``inventory_config.bridges`` translates settings
    into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- overlay file does not exist.
    - ``ValueError`` -- invalid value in YAML or environment.

Audit relevance:
    Every call emits an ``INVENTORY_CONFIG_TRACE`` log entry with the
    effective retry budget, timezone and fallback unit (never the database
    URL, which may carry credentials).
"""

from __future__ import annotations

import os
from pathlib import Path

from inventory_config.loader import load_settings
from inventory_config.settings import LedgerSettings
from inventory_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_PATH_ENV = "INVENTORY_LEDGER_CONFIG"


def get_active_settings(config_path: Path | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Layering: packaged defaults.yaml, then ``config_path`` (or the file
    named by INVENTORY_LEDGER_CONFIG), then environment overrides.
    """
    if config_path is None and os.environ.get(CONFIG_PATH_ENV):
        config_path = Path(os.environ[CONFIG_PATH_ENV])

    settings = load_settings(overlay_path=config_path, environ=os.environ)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_path": str(config_path) if config_path else None,
            "retry_attempts": settings.retry_attempts,
            "retry_base_delay_seconds": settings.retry_base_delay_seconds,
            "session_timezone": settings.session_timezone,
            "statement_timeout_ms": settings.statement_timeout_ms,
            "fallback_unit": settings.fallback_unit,
        },
    )
    return settings


__all__ = [
    "CONFIG_PATH_ENV",
    "LedgerSettings",
    "get_active_settings",
]
