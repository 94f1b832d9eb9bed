"""
Stock reconciliation

Audits the cached counters against their sources of truth: the ledger sum
for ledger-tracked products, the component derivation for kits. With
``repair=True`` a drifted ledger product gets its counter moved back to the
ledger sum (atomic delta, history untouched) and drifted kits are
recalculated.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select

from inventory_engine.core.database import Queryable
from inventory_engine.models import Product
from inventory_engine.schemas.inventory import StockDiscrepancy
from inventory_engine.services.catalog import load_kit_edges
from inventory_engine.services.kit_stock import (
    derive_kit_stock,
    recalculate_kit_stock,
    recalculate_kits_for_components,
)
from inventory_engine.services.movement_history import ledger_totals
from inventory_engine.services.movement_ledger import apply_stock_delta

logger = logging.getLogger(__name__)


async def reconcile_stock(
    db: Queryable,
    product_ids: Optional[Iterable[int]] = None,
    repair: bool = False,
) -> List[StockDiscrepancy]:
    """
    Find (and optionally fix) cached stock that disagrees with its source.

    Ledger products are repaired before kits are evaluated, so kit
    expectations use the corrected component stock.
    A repaired product also refreshes every kit that lists it, in or out of
    the requested scope.
    """
    query = select(Product.id, Product.name, Product.stock, Product.is_kit).order_by(Product.id)
    if product_ids is not None:
        query = query.where(Product.id.in_(set(product_ids)))
    rows = (await db.execute(query)).all()

    ledger_rows = [r for r in rows if not r.is_kit]
    kit_rows = [r for r in rows if r.is_kit]
    discrepancies: List[StockDiscrepancy] = []
    repaired_ids = []

    totals = await ledger_totals(db, [r.id for r in ledger_rows])
    for row in ledger_rows:
        expected = totals.get(row.id, 0)
        if row.stock == expected:
            continue
        discrepancy = StockDiscrepancy(
            product_id=row.id,
            product_name=row.name,
            is_kit=False,
            cached_stock=row.stock,
            expected_stock=expected,
        )
        if repair:
            await apply_stock_delta(db, row.id, expected - row.stock)
            repaired_ids.append(row.id)
            discrepancy.repaired = True
            logger.warning(
                "Stock drift repaired for product %s: cached %s, ledger %s",
                row.id, row.stock, expected,
            )
        discrepancies.append(discrepancy)

    if repaired_ids:
        await recalculate_kits_for_components(db, repaired_ids)

    if not kit_rows:
        return discrepancies

    # Re-read component stock after any repair above
    edges_by_kit = await load_kit_edges(db, [r.id for r in kit_rows])
    component_ids = {e.component_id for edges in edges_by_kit.values() for e in edges}
    component_stock = {}
    if component_ids:
        result = await db.execute(select(Product.id, Product.stock).where(Product.id.in_(component_ids)))
        component_stock = {pid: int(stock or 0) for pid, stock in result.all()}

    drifted_kits = []
    for row in kit_rows:
        expected = derive_kit_stock(
            (component_stock.get(e.component_id, 0), e.quantity) for e in edges_by_kit[row.id]
        )
        if row.stock == expected:
            continue
        drifted_kits.append(row.id)
        discrepancies.append(
            StockDiscrepancy(
                product_id=row.id,
                product_name=row.name,
                is_kit=True,
                cached_stock=row.stock,
                expected_stock=expected,
                repaired=repair,
            )
        )

    if repair and drifted_kits:
        await recalculate_kit_stock(db, drifted_kits)
        logger.warning("Recalculated %d drifted kit(s): %s", len(drifted_kits), drifted_kits)

    return discrepancies
