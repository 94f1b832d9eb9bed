"""
Movement Ledger

Appends one immutable InventoryMovement per stock change and applies the
delta to the product's cached stock with an atomic ``stock = stock + :q``
UPDATE. The previous/new stock snapshots are read just before the write;
under concurrency they are approximately ordered, the stock itself is not.

The single-movement API does not enforce non-negative stock. Callers that
need that guarantee validate first, or use the strict batch processor.
"""
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy import update

from inventory_engine.core.config import settings
from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import InvalidMovementError
from inventory_engine.models import (
    InventoryMovement,
    MovementDirection,
    MOVEMENT_DIRECTIONS,
    Product,
)
from inventory_engine.schemas.inventory import MovementCreate
from inventory_engine.services.catalog import get_product_state
from inventory_engine.services.kit_stock import recalculate_kits_for_components

logger = logging.getLogger(__name__)

MovementInput = Union[MovementCreate, Mapping[str, Any]]


def _field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def coerce_movement(data: MovementInput) -> MovementCreate:
    """
    Validate a movement request.

    Raises InvalidMovementError for a type outside the enumeration, a
    non-integer quantity, or a quantity whose sign contradicts the type
    (e.g. a positive DAMAGE).
    """
    if isinstance(data, MovementCreate):
        movement = data
    else:
        try:
            movement = MovementCreate.model_validate(data)
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise InvalidMovementError(
                f"Malformed movement: {'; '.join(problems)}",
                product_id=_field(data, "product_id"),
                movement_type=str(_field(data, "movement_type")),
                quantity=_field(data, "quantity"),
                details={"errors": problems},
            ) from e

    direction = MOVEMENT_DIRECTIONS[movement.movement_type]
    if (
        (direction == MovementDirection.INCREASE and movement.quantity < 0)
        or (direction == MovementDirection.DECREASE and movement.quantity > 0)
    ):
        raise InvalidMovementError(
            f"{movement.movement_type.value} movements must "
            f"{'add' if direction == MovementDirection.INCREASE else 'remove'} stock "
            f"(got {movement.quantity:+d})",
            product_id=movement.product_id,
            movement_type=movement.movement_type.value,
            quantity=movement.quantity,
        )

    return movement


def reject_kit_target(movement: MovementCreate, is_kit: bool) -> None:
    if is_kit:
        raise InvalidMovementError(
            f"Product {movement.product_id} is a kit; its stock is derived from its components",
            product_id=movement.product_id,
            movement_type=movement.movement_type.value,
            quantity=movement.quantity,
        )


async def apply_stock_delta(db: Queryable, product_id: int, delta: int) -> None:
    """Atomic increment/decrement of the cached stock counter."""
    if delta == 0:
        return
    await db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + delta)
    )


async def apply_hold_delta(db: Queryable, product_id: int, delta: int) -> None:
    """Atomic increment/decrement of the on-hold reservation counter."""
    if delta == 0:
        return
    await db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(on_hold=Product.on_hold + delta)
    )


async def write_movement(
    db: Queryable,
    movement: MovementCreate,
    previous_stock: int,
) -> InventoryMovement:
    """
    Append the ledger row and apply its delta.

    ``previous_stock`` is the caller's snapshot; batch callers pass their
    running stock so rows within one batch chain correctly. A zero quantity
    still writes a row for audit but issues no stock UPDATE.
    """
    record = InventoryMovement(
        store_id=movement.store_id,
        product_id=movement.product_id,
        movement_type=movement.movement_type.value,
        quantity=movement.quantity,
        previous_stock=previous_stock,
        new_stock=previous_stock + movement.quantity,
        reason=movement.reason,
        description=movement.description,
        reference_id=movement.reference_id,
        cost=movement.cost,
        price=movement.price,
        created_by=movement.created_by or settings.INVENTORY_SYSTEM_ACTOR,
    )
    db.add(record)
    await db.flush()

    await apply_stock_delta(db, movement.product_id, movement.quantity)
    return record


async def record_movement(db: Queryable, data: MovementInput) -> InventoryMovement:
    """
    Record a single stock movement.

    Args:
        db: Transaction handle; the caller commits
        data: MovementCreate or an equivalent mapping

    Returns:
        The written InventoryMovement

    Raises:
        NotFoundError: product does not exist
        InvalidMovementError: malformed movement or kit target
    """
    movement = coerce_movement(data)
    product = await get_product_state(db, movement.product_id)
    reject_kit_target(movement, product.is_kit)

    record = await write_movement(db, movement, product.stock)

    if movement.quantity != 0:
        await recalculate_kits_for_components(db, [movement.product_id])

    logger.info(
        "Movement %s recorded for product %s: %s -> %s (%s %+d) by %s",
        record.id,
        movement.product_id,
        record.previous_stock,
        record.new_stock,
        record.movement_type,
        record.quantity,
        record.created_by,
    )
    return record


async def adjust_stock(
    db: Queryable,
    product_id: int,
    quantity: int,
    store_id: Optional[str] = None,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> InventoryMovement:
    """Manual +/- adjustment, the common case for repair and admin screens."""
    return await record_movement(
        db,
        {
            "product_id": product_id,
            "store_id": store_id or settings.INVENTORY_DEFAULT_STORE_ID,
            "movement_type": "MANUAL_ADJUSTMENT",
            "quantity": quantity,
            "reason": reason,
            "created_by": created_by,
        },
    )
