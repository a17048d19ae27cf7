#!/usr/bin/env python3
"""
Recompute every product's moving-average unit cost from its recent
purchase receipts.

Usage:
    python scripts/recalculate_costs.py [--db-url URL] [--dry-run]

The database URL defaults to $DATABASE_URL.  Exit status is 0 on success,
1 when the recalculation could not run.
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from shopfloor_config import database_url, get_settings, load_settings
from shopfloor_kernel.db.engine import init_engine_from_url, session_scope
from shopfloor_kernel.db.immutability import register_immutability_listeners
from shopfloor_kernel.logging_config import configure_logging
from shopfloor_modules._orm_registry import import_all_orm_models
from shopfloor_modules.inventory.recalculator import CostRecalculator

SCRIPT_ACTOR_ID = UUID("00000000-0000-0000-0000-00000000c057")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Recompute product moving-average costs from purchase receipts.",
    )
    parser.add_argument("--db-url", type=str, default=None, help="Database URL (default: $DATABASE_URL)")
    parser.add_argument("--settings", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--actor-id", type=UUID, default=SCRIPT_ACTOR_ID)
    parser.add_argument("--dry-run", action="store_true", help="Compute and report without writing")
    parser.add_argument("--log-level", type=str, default="INFO")
    args = parser.parse_args()

    configure_logging(level=args.log_level.upper())
    settings = load_settings(args.settings) if args.settings else get_settings()

    init_engine_from_url(args.db_url or database_url())
    import_all_orm_models()
    register_immutability_listeners()

    with session_scope() as session:
        result = CostRecalculator(session, settings=settings).recalculate_all_product_costs(
            actor_id=args.actor_id,
            dry_run=args.dry_run,
        )

    if not result.is_success:
        print(f"Recalculation failed: {result.message}", file=sys.stderr)
        return 1

    print(f"Updated:   {result.data['updated_count']}")
    print(f"Unchanged: {result.data['unchanged_count']}")
    print(f"Skipped:   {result.data['skipped_count']}")
    if args.dry_run:
        print("(dry run, nothing written)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
