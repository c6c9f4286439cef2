"""
Module: inventory_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel domain values and logging.
    MUST NOT import inventory_services or inventory_config.

Invariants enforced:
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.
"""

from inventory_engines.costing import (
    DepletionAnomaly,
    ReplayResult,
    replay,
    sort_for_replay,
)

__all__ = [
    "DepletionAnomaly",
    "ReplayResult",
    "replay",
    "sort_for_replay",
]
