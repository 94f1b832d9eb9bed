"""
Read side of the ledger: movement history and per-product ledger totals.
"""
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import func, select

from inventory_engine.core.database import Queryable
from inventory_engine.models import InventoryMovement, MovementType


async def list_movements(
    db: Queryable,
    product_id: Optional[int] = None,
    store_id: Optional[str] = None,
    movement_type: Optional[Union[MovementType, str]] = None,
    reference_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[InventoryMovement]:
    """Movements matching the filters, newest first."""
    query = select(InventoryMovement)

    if product_id is not None:
        query = query.where(InventoryMovement.product_id == product_id)
    if store_id:
        query = query.where(InventoryMovement.store_id == store_id)
    if movement_type:
        query = query.where(InventoryMovement.movement_type == MovementType(movement_type).value)
    if reference_id:
        query = query.where(InventoryMovement.reference_id == reference_id)

    query = (
        query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def ledger_totals(db: Queryable, product_ids: Optional[Iterable[int]] = None) -> Dict[int, int]:
    """Sum of movement quantities per product (products without movements are absent)."""
    query = select(InventoryMovement.product_id, func.sum(InventoryMovement.quantity)).group_by(
        InventoryMovement.product_id
    )
    if product_ids is not None:
        ids = set(product_ids)
        if not ids:
            return {}
        query = query.where(InventoryMovement.product_id.in_(ids))

    result = await db.execute(query)
    return {product_id: int(total or 0) for product_id, total in result.all()}
