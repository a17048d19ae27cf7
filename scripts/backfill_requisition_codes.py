#!/usr/bin/env python3
"""
Assign SC-<year>-<seq> codes to requisitions created without one.

Requisitions are coded per year of request, in creation order, continuing
from the highest code already used that year.

Usage:
    python scripts/backfill_requisition_codes.py [--db-url URL]
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
from shopfloor_modules.purchasing.service import RequisitionLedger
from shopfloor_services.collaborators import AllowAllGuard

SCRIPT_ACTOR_ID = UUID("00000000-0000-0000-0000-00000000c0de")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Backfill missing purchase requisition codes.",
    )
    parser.add_argument("--db-url", type=str, default=None, help="Database URL (default: $DATABASE_URL)")
    parser.add_argument("--settings", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--actor-id", type=UUID, default=SCRIPT_ACTOR_ID)
    parser.add_argument("--log-level", type=str, default="INFO")
    args = parser.parse_args()

    configure_logging(level=args.log_level.upper())
    settings = load_settings(args.settings) if args.settings else get_settings()

    init_engine_from_url(args.db_url or database_url())
    import_all_orm_models()
    register_immutability_listeners()

    with session_scope() as session:
        ledger = RequisitionLedger(session, AllowAllGuard(), settings=settings)
        result = ledger.backfill_codes(actor_id=args.actor_id)

    if not result.is_success:
        print(f"Backfill failed: {result.message}", file=sys.stderr)
        return 1

    print(f"Assigned:   {result.data['assigned_count']}")
    print(f"Unassigned: {result.data['unassigned_count']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
