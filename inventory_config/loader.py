"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads the packaged ``defaults.yaml``, deep-merges an optional overlay YAML
file, applies environment overrides and parses the result into a
``LedgerSettings``.  Runtime callers use
``inventory_config.get_active_settings()`` instead of this module.

Failure modes
-------------
* Missing overlay file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Non-mapping YAML document  -> ``ValueError``.
* Non-numeric environment override  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from inventory_config.settings import LedgerSettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# env var -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "DATABASE_URL": ("database", "url", str),
    "INVENTORY_RETRY_ATTEMPTS": ("transactions", "retry_attempts", int),
    "INVENTORY_RETRY_BASE_DELAY": ("transactions", "retry_base_delay_seconds", float),
    "INVENTORY_STATEMENT_TIMEOUT_MS": ("transactions", "statement_timeout_ms", int),
    "INVENTORY_FALLBACK_UNIT": ("inventory", "fallback_unit", str),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty document yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; overlay wins on scalar conflicts."""
    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(
    raw: Mapping[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    result = merge(raw, {})
    for env_name, (section, key, parser) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        try:
            parsed = parser(value)
        except ValueError:
            raise ValueError(f"{env_name}={value!r} is not a valid {parser.__name__}") from None
        result[section] = merge(result.get(section) or {}, {key: parsed})
    return result


def parse_settings(raw: Mapping[str, Any]) -> LedgerSettings:
    database = raw.get("database") or {}
    transactions = raw.get("transactions") or {}
    inventory = raw.get("inventory") or {}

    timeout = transactions.get("statement_timeout_ms")
    return LedgerSettings(
        database_url=str(database.get("url") or ""),
        pool_size=int(database.get("pool_size", 20)),
        max_overflow=int(database.get("max_overflow", 10)),
        retry_attempts=int(transactions.get("retry_attempts", 3)),
        retry_base_delay_seconds=float(transactions.get("retry_base_delay_seconds", 0.2)),
        session_timezone=str(transactions.get("session_timezone", "UTC")),
        statement_timeout_ms=int(timeout) if timeout is not None else None,
        fallback_unit=str(inventory.get("fallback_unit", "kg")),
    )


def load_settings(
    overlay_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Defaults -> overlay file -> environment, parsed into LedgerSettings."""
    raw = load_yaml_file(DEFAULTS_PATH)
    if overlay_path is not None:
        raw = merge(raw, load_yaml_file(Path(overlay_path)))
    raw = apply_env_overrides(raw, environ or {})
    return parse_settings(raw)
