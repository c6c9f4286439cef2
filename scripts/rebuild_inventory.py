#!/usr/bin/env python3
"""
Rebuild the current_inventory materialized view for one tenant from its
transaction ledger.

current_inventory is disposable: every row can be re-derived from
transaction_history.  Use this after bulk ledger repairs, or to verify that
the stored state matches a fresh replay.

Usage:
    python3 scripts/rebuild_inventory.py --tenant-id <uuid>
    python3 scripts/rebuild_inventory.py --tenant-id <uuid> --item Fertilizer-X
    python3 scripts/rebuild_inventory.py --tenant-id <uuid> --item Fertilizer-X --location WH-1
    DATABASE_URL=postgresql://... python3 scripts/rebuild_inventory.py --tenant-id <uuid>
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from inventory_config import get_active_settings
from inventory_kernel.db.engine import get_session_factory, init_engine_from_url
from inventory_kernel.domain.ledger import normalize_location_id
from inventory_kernel.domain.tenant import TenantContext
from inventory_kernel.exceptions import InventoryKernelError
from inventory_kernel.logging_config import configure_logging
from inventory_services import ALL_LOCATIONS, build_orchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild one tenant's inventory state from the ledger.",
    )
    parser.add_argument("--tenant-id", required=True, help="Tenant to rebuild")
    parser.add_argument("--role", default="admin", help="Role pinned for the session")
    parser.add_argument("--item", help="Only rebuild this item type")
    parser.add_argument(
        "--location",
        help="Only rebuild this location (with --item); 'unassigned' = pooled bucket",
    )
    parser.add_argument("--config", type=Path, help="Overlay YAML settings file")
    parser.add_argument("--database-url", help="Overrides the configured database URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.location is not None and not args.item:
        print("ERROR: --location requires --item", file=sys.stderr)
        return 2

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = get_active_settings(args.config)
    init_engine_from_url(
        args.database_url or settings.database_url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    orchestrator = build_orchestrator(get_session_factory(), settings)
    context = TenantContext(tenant_id=args.tenant_id, role=args.role)

    try:
        if args.item:
            location = (
                ALL_LOCATIONS
                if args.location is None
                else normalize_location_id(args.location)
            )
            states = orchestrator.recalculate(context, args.item, location)
        else:
            states = orchestrator.rebuild_tenant(context)
    except InventoryKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(f"{'ITEM':<30} {'LOCATION':<20} {'QUANTITY':>16} {'UNIT':<6} {'AVG COST':>14} {'TOTAL COST':>16}")
    for state in states:
        print(
            f"{state.item_type:<30} {state.location_id or '(pooled)':<20} "
            f"{state.quantity:>16.3f} {state.unit:<6} "
            f"{state.avg_unit_cost:>14.4f} {state.total_cost:>16.2f}"
        )
    print(f"\n{len(states)} bucket(s) rebuilt for tenant {context.tenant_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
