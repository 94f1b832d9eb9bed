"""
Inventory Movement model - the append-only stock ledger.

Every stock change is one row: signed quantity (positive = in, negative =
out), the movement type, who/why/what-for, and the stock snapshots taken
when the row was written. Rows are never updated or deleted; corrections
are new offsetting rows.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Dict, List

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Numeric,
    CheckConstraint, Index, event
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from inventory_engine.core.database import Base
from inventory_engine.core.exceptions import InvalidMovementError


class MovementType(str, PyEnum):
    """Closed set of reasons stock can change."""
    ORDER_PLACED = "ORDER_PLACED"            # Sale
    ORDER_CANCELLED = "ORDER_CANCELLED"      # Cancellation
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
    INITIAL_MIGRATION = "INITIAL_MIGRATION"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"
    LOST = "LOST"
    PROMOTION = "PROMOTION"
    PURCHASE = "PURCHASE"
    INITIAL_INTAKE = "INITIAL_INTAKE"
    RESTOCK_RECEIVED = "RESTOCK_RECEIVED"
    STORE_USE = "STORE_USE"                  # Internal use


class MovementDirection(str, PyEnum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    EITHER = "EITHER"


MOVEMENT_TYPE_LABELS: Dict[MovementType, str] = {
    MovementType.ORDER_PLACED: "Sale",
    MovementType.ORDER_CANCELLED: "Cancellation",
    MovementType.MANUAL_ADJUSTMENT: "Manual Adjustment (+/-)",
    MovementType.INITIAL_MIGRATION: "Migration",
    MovementType.RETURN: "Return (+)",
    MovementType.DAMAGE: "Damage (-)",
    MovementType.LOST: "Loss (-)",
    MovementType.PROMOTION: "Promotion (-)",
    MovementType.PURCHASE: "Purchase",
    MovementType.INITIAL_INTAKE: "Initial Intake (+)",
    MovementType.RESTOCK_RECEIVED: "Restock Received",
    MovementType.STORE_USE: "Internal Use (-)",
}

MOVEMENT_DIRECTIONS: Dict[MovementType, MovementDirection] = {
    MovementType.ORDER_PLACED: MovementDirection.DECREASE,
    MovementType.ORDER_CANCELLED: MovementDirection.INCREASE,
    MovementType.MANUAL_ADJUSTMENT: MovementDirection.EITHER,
    MovementType.INITIAL_MIGRATION: MovementDirection.EITHER,
    MovementType.RETURN: MovementDirection.INCREASE,
    MovementType.DAMAGE: MovementDirection.DECREASE,
    MovementType.LOST: MovementDirection.DECREASE,
    MovementType.PROMOTION: MovementDirection.DECREASE,
    MovementType.PURCHASE: MovementDirection.INCREASE,
    MovementType.INITIAL_INTAKE: MovementDirection.INCREASE,
    MovementType.RESTOCK_RECEIVED: MovementDirection.INCREASE,
    MovementType.STORE_USE: MovementDirection.DECREASE,
}

# Types an operator may pick on the manual adjustment screen
MANUAL_ADJUSTMENT_OPTIONS: List[Dict[str, str]] = [
    {"value": t.value, "label": MOVEMENT_TYPE_LABELS[t]}
    for t in (
        MovementType.MANUAL_ADJUSTMENT,
        MovementType.DAMAGE,
        MovementType.LOST,
        MovementType.STORE_USE,
        MovementType.PROMOTION,
        MovementType.RETURN,
        MovementType.INITIAL_INTAKE,
    )
]


class InventoryMovement(Base):
    """Audit trail row for one stock change"""
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, index=True)

    store_id = Column(String(64), nullable=False, index=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    movement_type = Column(String(30), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)  # positive for in, negative for out

    # Snapshots for audit; approximately ordered under concurrency
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)

    # Why
    reason = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    # Originating transaction (order id, restock order id, ...)
    reference_id = Column(String(100), nullable=True, index=True)

    # Unit cost/price at the time of the movement
    cost = Column(Numeric(12, 2), nullable=True)
    price = Column(Numeric(12, 2), nullable=True)

    # Who: user id or the system actor
    created_by = Column(String(100), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True
    )

    product = relationship("Product", back_populates="movements")

    __table_args__ = (
        CheckConstraint(
            "movement_type IN ({})".format(", ".join(f"'{t.value}'" for t in MovementType)),
            name="chk_inventory_movement_type"
        ),
        Index("ix_inventory_movements_product_created", product_id, created_at.desc()),
        Index("ix_inventory_movements_reference", reference_id, movement_type),
    )

    @property
    def type_label(self) -> str:
        try:
            return MOVEMENT_TYPE_LABELS[MovementType(self.movement_type)]
        except ValueError:
            return self.movement_type

    def __repr__(self):
        return f"<InventoryMovement {self.id}: {self.movement_type} {self.quantity:+d} on product {self.product_id}>"


@event.listens_for(InventoryMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise InvalidMovementError(
        "Inventory movements are append-only; record an offsetting movement instead",
        product_id=target.product_id,
        movement_type=target.movement_type,
        quantity=target.quantity,
    )


@event.listens_for(InventoryMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise InvalidMovementError(
        "Inventory movements cannot be deleted; record an offsetting movement instead",
        product_id=target.product_id,
        movement_type=target.movement_type,
        quantity=target.quantity,
    )
