"""
Order Stock Reservation

Ties order lifecycle transitions to inventory. It only decides which
movement types and quantities to submit; every stock and hold change goes
through the ledger and the batch processor.

    place (CREATED/PENDING)  ORDER_PLACED decrements, quantity held
    place (PAID)             ORDER_PLACED decrements, sold outright
    CREATED -> PENDING       no inventory effect
    CREATED/PENDING -> PAID  hold released, stock untouched
    * -> CANCELLED           ORDER_CANCELLED offsets for what the ledger
                             shows the order drew; hold released if held

Kit lines are expanded into their components before anything is written;
a kit's own stock is derived and never moved directly.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple, Union

from sqlalchemy import func, select

from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import InvalidOrderTransitionError
from inventory_engine.models import (
    HOLD_STATUSES,
    InventoryMovement,
    MovementType,
    Order,
    OrderItem,
    OrderStatus,
)
from inventory_engine.schemas.inventory import BatchMode, BatchResult, MovementCreate, StockRequest
from inventory_engine.services.availability import expand_requirements, validate_availability
from inventory_engine.services.batch_processor import record_movement_batch
from inventory_engine.services.movement_ledger import apply_hold_delta

logger = logging.getLogger(__name__)

ORDER_MOVEMENT_TYPES = (MovementType.ORDER_PLACED.value, MovementType.ORDER_CANCELLED.value)

ALLOWED_TRANSITIONS = {
    OrderStatus.CREATED: {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: set(),
}


class OrderStockReservation:
    """Inventory side of the order lifecycle."""

    @staticmethod
    def generate_order_number() -> str:
        """Generate unique order number in format ORD-YYYYMMDD-XXXXXXXX."""
        return f"ORD-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"

    @staticmethod
    def _requests(order: Order) -> list:
        return [StockRequest(product_id=item.product_id, quantity=item.quantity) for item in order.items]

    @staticmethod
    async def drawn_quantities(db: Queryable, order: Order) -> Dict[int, int]:
        """Units per product the order still holds drawn from stock, per the ledger."""
        result = await db.execute(
            select(InventoryMovement.product_id, func.sum(InventoryMovement.quantity))
            .where(
                InventoryMovement.reference_id == order.reference,
                InventoryMovement.movement_type.in_(ORDER_MOVEMENT_TYPES),
            )
            .group_by(InventoryMovement.product_id)
            .order_by(InventoryMovement.product_id)
        )
        # Placed movements are negative; net negative means still drawn
        return {product_id: -int(net) for product_id, net in result.all() if net and net < 0}

    @staticmethod
    async def place_order(db: Queryable, order: Order) -> BatchResult:
        """
        Validate and draw stock for a new order.

        Raises InsufficientStockError / MultipleInsufficientStockError with
        every short product when the order cannot be fulfilled; nothing is
        written in that case.
        """
        # Column default only lands on flush; a fresh order may not have one yet
        if order.status is None:
            order.status = OrderStatus.CREATED.value
        status = OrderStatus(order.status)
        if status == OrderStatus.CANCELLED:
            raise InvalidOrderTransitionError(
                f"Order {order.order_number} is cancelled; nothing to reserve",
                order_id=order.id,
                to_status=status.value,
            )

        if order.id is None:
            # Movements reference the order id
            db.add(order)
            await db.flush()

        requests = OrderStockReservation._requests(order)
        await validate_availability(db, requests)
        requirements, _ = await expand_requirements(db, requests)

        movements = [
            MovementCreate(
                product_id=product_id,
                store_id=order.store_id,
                movement_type=MovementType.ORDER_PLACED,
                quantity=-quantity,
                reason=f"Order {order.order_number}",
                reference_id=order.reference,
                created_by=order.created_by,
            )
            for product_id, quantity in requirements.items()
            if quantity > 0
        ]
        # Already validated against the expanded lines above
        result = await record_movement_batch(db, movements, mode=BatchMode.STRICT, validate=False)

        if status in HOLD_STATUSES:
            for movement in movements:
                await apply_hold_delta(db, movement.product_id, -movement.quantity)
        elif status == OrderStatus.PAID and order.paid_at is None:
            order.paid_at = datetime.now(timezone.utc)

        await db.flush()
        logger.info(
            "Order %s placed (%s): %d product(s) drawn%s",
            order.order_number,
            status.value,
            len(movements),
            ", held" if status in HOLD_STATUSES else "",
        )
        return result

    @staticmethod
    async def create_order(
        db: Queryable,
        store_id: str,
        items: Iterable[Tuple[int, int]],
        status: Union[OrderStatus, str] = OrderStatus.CREATED,
        order_number: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Order:
        """Persist an order with its items and reserve its stock."""
        order = Order(
            order_number=order_number or OrderStockReservation.generate_order_number(),
            store_id=store_id,
            status=OrderStatus(status).value,
            created_by=created_by,
            items=[OrderItem(product_id=product_id, quantity=quantity) for product_id, quantity in items],
        )
        db.add(order)
        await db.flush()

        await OrderStockReservation.place_order(db, order)
        return order

    @staticmethod
    async def transition(
        db: Queryable,
        order: Order,
        new_status: Union[OrderStatus, str],
    ) -> Optional[BatchResult]:
        """
        Move an order to a new status and submit the matching movements.

        Returns the BatchResult of any movements written, None when the
        transition has no stock effect.
        """
        current = OrderStatus(order.status)
        target = OrderStatus(new_status)
        if current == target:
            return None

        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidOrderTransitionError(
                f"Cannot move order {order.order_number} from {current.value} to {target.value}",
                order_id=order.id,
                from_status=current.value,
                to_status=target.value,
            )

        result = None
        drawn = await OrderStockReservation.drawn_quantities(db, order)
        now = datetime.now(timezone.utc)

        if target == OrderStatus.PAID:
            for product_id, quantity in drawn.items():
                await apply_hold_delta(db, product_id, -quantity)
            order.paid_at = now

        elif target == OrderStatus.CANCELLED:
            offsets = [
                MovementCreate(
                    product_id=product_id,
                    store_id=order.store_id,
                    movement_type=MovementType.ORDER_CANCELLED,
                    quantity=quantity,
                    reason=f"Order {order.order_number} cancelled",
                    reference_id=order.reference,
                    created_by=order.created_by,
                )
                for product_id, quantity in drawn.items()
            ]
            result = await record_movement_batch(db, offsets, mode=BatchMode.STRICT)
            if current in HOLD_STATUSES:
                for product_id, quantity in drawn.items():
                    await apply_hold_delta(db, product_id, -quantity)
            order.cancelled_at = now

        order.status = target.value
        await db.flush()

        logger.info(
            "Order %s transitioned %s -> %s (%d product(s) affected)",
            order.order_number,
            current.value,
            target.value,
            len(drawn),
        )
        return result


# Singleton instance
order_stock_reservation = OrderStockReservation()
