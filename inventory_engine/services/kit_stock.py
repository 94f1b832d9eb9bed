"""
Kit Stock Derivation

A kit's stock is how many complete kits the components can build right
now: the minimum over its edges of ``component.stock // edge.quantity``,
0 when it has no components, never negative.

Recalculation is an explicit post-step called by the ledger and the batch
processor with the deduplicated set of affected kits. It does not recurse
into kits that contain other kits.
"""
import logging
from typing import Dict, Iterable, Tuple

from sqlalchemy import update

from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import KitConfigurationError, NotFoundError
from inventory_engine.models import Product
from inventory_engine.services.catalog import find_kits_containing, load_kit_edges, load_product_states

logger = logging.getLogger(__name__)


def derive_kit_stock(edges: Iterable[Tuple[int, int]]) -> int:
    """
    Buildable kit count from (component_stock, required_per_kit) pairs.

    Edges requiring zero or fewer units are ignored.
    """
    buildable = [stock // required for stock, required in edges if required > 0]
    if not buildable:
        return 0
    return max(min(buildable), 0)


async def recalculate_kit_stock(db: Queryable, kit_ids: Iterable[int]) -> Dict[int, int]:
    """
    Recompute and persist the derived stock of each kit.

    Raises NotFoundError for an unknown kit or a missing component, and
    KitConfigurationError for an id that is not a kit; a stale composite
    figure is worse than failing the triggering operation.

    Returns the new stock per kit id.
    """
    ids = sorted(set(kit_ids))
    if not ids:
        return {}

    kits = await load_product_states(db, ids)
    edges_by_kit = await load_kit_edges(db, ids)

    results: Dict[int, int] = {}
    for kit_id in ids:
        kit = kits.get(kit_id)
        if kit is None:
            raise NotFoundError(f"Kit not found: {kit_id}", product_id=kit_id)
        if not kit.is_kit:
            raise KitConfigurationError(
                f"Product {kit_id} is not a kit; its stock comes from the ledger",
                details={"product_id": kit_id},
            )

        pairs = []
        for edge in edges_by_kit[kit_id]:
            if edge.component_stock is None:
                raise NotFoundError(
                    f"Component {edge.component_id} of kit {kit_id} not found",
                    product_id=edge.component_id,
                )
            pairs.append((edge.component_stock, edge.quantity))

        new_stock = derive_kit_stock(pairs)
        results[kit_id] = new_stock

        if new_stock != kit.stock:
            await db.execute(
                update(Product)
                .where(Product.id == kit_id)
                .values(stock=new_stock)
            )
            logger.info(f"Kit {kit_id} stock recalculated: {kit.stock} -> {new_stock}")

    return results


async def recalculate_kits_for_components(db: Queryable, product_ids: Iterable[int]) -> Dict[int, int]:
    """Recalculate every kit that lists any of the given products as a component."""
    kit_ids = await find_kits_containing(db, product_ids)
    if not kit_ids:
        return {}
    return await recalculate_kit_stock(db, kit_ids)
