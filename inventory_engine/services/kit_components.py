"""
Kit bill-of-materials editing.

Replacing a kit's components is the one place edges are written, so it is
where cycles are refused: a kit may contain other kits, but never itself.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy import delete

from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import KitConfigurationError, KitCycleError, NotFoundError
from inventory_engine.models import KitComponent
from inventory_engine.schemas.inventory import KitComponentInput
from inventory_engine.services.catalog import get_product_state, load_kit_edges, load_product_states
from inventory_engine.services.kit_stock import recalculate_kit_stock

logger = logging.getLogger(__name__)


async def find_path_to(db: Queryable, start_ids: Iterable[int], target_id: int) -> Optional[List[int]]:
    """
    Component path from one of ``start_ids`` down to ``target_id`` through
    existing edges, or None when the target is unreachable.
    """
    parents: Dict[int, Optional[int]] = {pid: None for pid in start_ids}
    frontier = set(parents)
    while frontier:
        if target_id in frontier:
            path = [target_id]
            while parents[path[-1]] is not None:
                path.append(parents[path[-1]])
            return list(reversed(path))

        edges_by_kit = await load_kit_edges(db, frontier)
        next_frontier = set()
        for kit_id in sorted(edges_by_kit):
            for edge in edges_by_kit[kit_id]:
                if edge.component_id not in parents:
                    parents[edge.component_id] = kit_id
                    next_frontier.add(edge.component_id)
        frontier = next_frontier
    return None


async def set_kit_components(
    db: Queryable,
    kit_id: int,
    components: Iterable[Union[KitComponentInput, Mapping[str, Any]]],
) -> int:
    """
    Replace a kit's bill of materials and recalculate its stock.

    Raises:
        NotFoundError: kit or a component does not exist
        KitConfigurationError: product is not a kit, or a component repeats
        KitCycleError: a component is the kit or (transitively) contains it

    Returns the kit's new derived stock.
    """
    kit = await get_product_state(db, kit_id)
    if not kit.is_kit:
        raise KitConfigurationError(
            f"Product {kit_id} is not a kit",
            details={"product_id": kit_id},
        )

    edges = [c if isinstance(c, KitComponentInput) else KitComponentInput.model_validate(c) for c in components]

    seen = set()
    for edge in edges:
        if edge.component_id == kit_id:
            raise KitCycleError(f"Kit {kit_id} cannot contain itself", path=[kit_id, kit_id])
        if edge.component_id in seen:
            raise KitConfigurationError(
                f"Component {edge.component_id} listed twice in kit {kit_id}",
                details={"product_id": kit_id, "component_id": edge.component_id},
            )
        seen.add(edge.component_id)

    states = await load_product_states(db, seen)
    for component_id in seen:
        if component_id not in states:
            raise NotFoundError(f"Component not found: {component_id}", product_id=component_id)

    nested_kits = [cid for cid in seen if states[cid].is_kit]
    if nested_kits:
        path = await find_path_to(db, nested_kits, kit_id)
        if path is not None:
            path = [kit_id] + path
            raise KitCycleError(
                f"Kit {kit_id} would contain itself: {' -> '.join(str(p) for p in path)}",
                path=path,
            )

    await db.execute(delete(KitComponent).where(KitComponent.kit_id == kit_id))
    for edge in edges:
        db.add(
            KitComponent(
                kit_id=kit_id,
                component_id=edge.component_id,
                quantity=edge.quantity,
                display_order=edge.display_order,
            )
        )
    await db.flush()

    new_stock = (await recalculate_kit_stock(db, [kit_id]))[kit_id]
    logger.info(f"Kit {kit_id} components replaced ({len(edges)} edge(s)), stock now {new_stock}")
    return new_stock
