"""
inventory_engines.tracer -- Engine invocation tracer emitting INVENTORY_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure engine function with one structured log
    record: engine name, engine version, a deterministic fingerprint of the
    selected inputs and the duration.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; no I/O is introduced into engines.

Invariants enforced:
    - Fingerprints are deterministic: values are canonicalized (sorted dict
      keys, ordered sequences) and hashed with SHA-256, truncated to 16 hex
      characters.
    - The decorator never mutates inputs or results.

Usage:
    @traced_engine("costing_replay", "1.0", fingerprint_fields=("entries",))
    def replay(entries): ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from typing import Any

from inventory_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Stable string form of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """SHA-256 prefix (16 hex chars) over the named arguments.

    Missing fields are recorded as "null".
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        parts.append(f"{field}={_canonicalize(arguments.get(field))}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits INVENTORY_ENGINE_TRACE for engine invocations.

    Positional arguments are bound to their parameter names before
    fingerprinting: ``replay(entries)`` and ``replay(entries=entries)``
    produce the same fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "INVENTORY_ENGINE_TRACE",
                extra={
                    "trace_type": "INVENTORY_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
