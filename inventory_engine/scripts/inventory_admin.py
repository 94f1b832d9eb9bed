#!/usr/bin/env python3
"""
Inventory Admin CLI

Maintenance and repair commands for the inventory ledger.

Usage:
    # Recalculate every kit (or only the given ones)
    inventory-admin recalculate-kits
    inventory-admin recalculate-kits --kit-id 12 --kit-id 15

    # Compare cached stock with the ledger / kit derivation
    inventory-admin reconcile
    inventory-admin reconcile --product-id 7 --repair

    # Show a product's latest movements
    inventory-admin history 7 --limit 20

Environment:
    DATABASE_URL - Database to operate on
    LOG_LEVEL - Logging level (default: INFO)
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from sqlalchemy import select

from inventory_engine.core.database import Queryable, get_db_session
from inventory_engine.core.exceptions import InventoryEngineError
from inventory_engine.core.logging_config import configure_logging
from inventory_engine.models import Product
from inventory_engine.services.kit_stock import recalculate_kit_stock
from inventory_engine.services.movement_history import list_movements
from inventory_engine.services.reconciliation import reconcile_stock

logger = logging.getLogger(__name__)


# =============================================================================
# COMMANDS
# =============================================================================

async def cmd_recalculate_kits(db: Queryable, args) -> int:
    kit_ids = args.kit_id
    if not kit_ids:
        result = await db.execute(select(Product.id).where(Product.is_kit.is_(True)))
        kit_ids = list(result.scalars().all())

    results = await recalculate_kit_stock(db, kit_ids)
    for kit_id, stock in sorted(results.items()):
        print(f"  kit {kit_id}: stock {stock}")
    print(f"Recalculated {len(results)} kit(s)")
    return 0


async def cmd_reconcile(db: Queryable, args) -> int:
    discrepancies = await reconcile_stock(db, product_ids=args.product_id or None, repair=args.repair)
    if not discrepancies:
        print("All cached stock matches the ledger")
        return 0

    for d in discrepancies:
        kind = "kit" if d.is_kit else "product"
        status = "repaired" if d.repaired else "drift"
        print(
            f"  {kind} {d.product_id} {d.product_name!r}: cached {d.cached_stock}, "
            f"expected {d.expected_stock} ({d.drift:+d}) [{status}]"
        )
    print(f"{len(discrepancies)} discrepanc{'y' if len(discrepancies) == 1 else 'ies'} found")
    # Non-zero exit lets cron/CI flag unrepaired drift
    return 0 if args.repair else 1


async def cmd_history(db: Queryable, args) -> int:
    movements = await list_movements(db, product_id=args.product_id, limit=args.limit)
    if not movements:
        print(f"No movements for product {args.product_id}")
        return 0

    for m in movements:
        print(
            f"  {m.created_at:%Y-%m-%d %H:%M:%S}  {m.movement_type:<18} {m.quantity:+6d}  "
            f"{m.previous_stock:>6} -> {m.new_stock:<6} {m.created_by or '-'}  {m.reason or ''}"
        )
    return 0


COMMANDS = {
    "recalculate-kits": cmd_recalculate_kits,
    "reconcile": cmd_reconcile,
    "history": cmd_history,
}


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inventory-admin", description="Inventory ledger maintenance")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    recalc = sub.add_parser("recalculate-kits", help="Recompute derived kit stock")
    recalc.add_argument("--kit-id", type=int, action="append", default=[], help="Kit to recalculate (repeatable)")

    reconcile = sub.add_parser("reconcile", help="Compare cached stock with the ledger")
    reconcile.add_argument("--product-id", type=int, action="append", default=[], help="Limit to product (repeatable)")
    reconcile.add_argument("--repair", action="store_true", help="Fix drifted counters")

    history = sub.add_parser("history", help="Show a product's movements")
    history.add_argument("product_id", type=int)
    history.add_argument("--limit", type=int, default=50)

    return parser


async def run(args) -> int:
    async with get_db_session() as db:
        return await COMMANDS[args.command](db, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return asyncio.run(run(args))
    except InventoryEngineError as e:
        logger.error("%s failed: %s", args.command, e.message, extra={"error": e.to_dict()})
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
