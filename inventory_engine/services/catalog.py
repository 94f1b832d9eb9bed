"""
Read access to the product catalog: names, cached stock, kit flags and
bill-of-materials edges.

Stock is always selected as a column, never read off a possibly stale ORM
instance in the session's identity map.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy import select

from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import NotFoundError
from inventory_engine.models import KitComponent, Product


class ProductState(NamedTuple):
    id: int
    name: str
    stock: int
    on_hold: int
    is_kit: bool


class KitEdge(NamedTuple):
    kit_id: int
    component_id: int
    quantity: int
    component_name: Optional[str]
    component_stock: Optional[int]  # None when the component row is missing


async def load_product_states(db: Queryable, product_ids: Iterable[int]) -> Dict[int, ProductState]:
    """Snapshot of every requested product that exists, keyed by id."""
    ids = set(product_ids)
    if not ids:
        return {}

    result = await db.execute(
        select(Product.id, Product.name, Product.stock, Product.on_hold, Product.is_kit)
        .where(Product.id.in_(ids))
    )
    return {
        row.id: ProductState(row.id, row.name, int(row.stock or 0), int(row.on_hold or 0), bool(row.is_kit))
        for row in result
    }


async def get_product_state(db: Queryable, product_id: int) -> ProductState:
    states = await load_product_states(db, [product_id])
    state = states.get(product_id)
    if state is None:
        raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)
    return state


async def load_kit_edges(db: Queryable, kit_ids: Iterable[int]) -> Dict[int, List[KitEdge]]:
    """Bill-of-materials edges per kit, in display order. Kits without edges map to []."""
    ids = set(kit_ids)
    edges: Dict[int, List[KitEdge]] = defaultdict(list)
    if not ids:
        return edges

    result = await db.execute(
        select(
            KitComponent.kit_id,
            KitComponent.component_id,
            KitComponent.quantity,
            Product.name,
            Product.stock,
        )
        .outerjoin(Product, Product.id == KitComponent.component_id)
        .where(KitComponent.kit_id.in_(ids))
        .order_by(KitComponent.kit_id, KitComponent.display_order, KitComponent.id)
    )
    for row in result:
        edges[row.kit_id].append(
            KitEdge(
                kit_id=row.kit_id,
                component_id=row.component_id,
                quantity=int(row.quantity or 0),
                component_name=row.name,
                component_stock=None if row.stock is None else int(row.stock),
            )
        )
    for kit_id in ids:
        edges.setdefault(kit_id, [])
    return edges


async def find_kits_containing(db: Queryable, product_ids: Iterable[int]) -> set:
    """Ids of every kit that lists any of the products as a direct component."""
    ids = set(product_ids)
    if not ids:
        return set()

    result = await db.execute(
        select(KitComponent.kit_id)
        .join(Product, Product.id == KitComponent.kit_id)
        .where(KitComponent.component_id.in_(ids), Product.is_kit.is_(True))
        .distinct()
    )
    return set(result.scalars().all())
