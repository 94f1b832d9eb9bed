from inventory_engine.models.product import Product
from inventory_engine.models.kit_component import KitComponent
from inventory_engine.models.inventory_movement import (
    InventoryMovement,
    MovementType,
    MovementDirection,
    MOVEMENT_TYPE_LABELS,
    MOVEMENT_DIRECTIONS,
    MANUAL_ADJUSTMENT_OPTIONS,
)
from inventory_engine.models.order import Order, OrderItem, OrderStatus, HOLD_STATUSES
