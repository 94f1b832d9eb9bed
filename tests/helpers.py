"""Seed and lookup helpers shared by the test modules."""
from typing import Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_engine.models import InventoryMovement, Product
from inventory_engine.services.kit_components import set_kit_components
from inventory_engine.services.movement_ledger import record_movement

STORE_ID = "store-1"


async def make_product(db: AsyncSession, name: str, stock: int = 0, sku: Optional[str] = None) -> Product:
    """Ledger-tracked product whose initial stock comes from an INITIAL_INTAKE movement."""
    product = Product(name=name, sku=sku, stock=0, is_kit=False)
    db.add(product)
    await db.flush()
    if stock:
        await record_movement(db, {
            "product_id": product.id,
            "store_id": STORE_ID,
            "movement_type": "INITIAL_INTAKE",
            "quantity": stock,
            "reason": "seed",
        })
    return product


async def make_kit(db: AsyncSession, name: str, components: Iterable[Tuple[Product, int]] = ()) -> Product:
    kit = Product(name=name, stock=0, is_kit=True)
    db.add(kit)
    await db.flush()
    edges = [{"component_id": p.id, "quantity": qty} for p, qty in components]
    if edges:
        await set_kit_components(db, kit.id, edges)
    return kit


async def stock_of(db: AsyncSession, product_id: int) -> int:
    return (await db.execute(select(Product.stock).where(Product.id == product_id))).scalar_one()


async def on_hold_of(db: AsyncSession, product_id: int) -> int:
    return (await db.execute(select(Product.on_hold).where(Product.id == product_id))).scalar_one()


async def movements_of(db: AsyncSession, product_id: int):
    result = await db.execute(
        select(InventoryMovement)
        .where(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.id)
    )
    return list(result.scalars().all())


def movement(product_id: int, quantity: int, movement_type: str = "MANUAL_ADJUSTMENT", **extra) -> dict:
    return {
        "product_id": product_id,
        "store_id": STORE_ID,
        "movement_type": movement_type,
        "quantity": quantity,
        **extra,
    }
