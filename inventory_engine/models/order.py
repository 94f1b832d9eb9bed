"""
Order models

Only the fields the stock reservation flow needs: status drives which
movements are submitted, items name the products and quantities drawn.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship

from inventory_engine.core.database import Base


class OrderStatus(str, PyEnum):
    """Order lifecycle states that matter to inventory."""
    CREATED = "CREATED"
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# Statuses whose stock is drawn but still held (not yet sold)
HOLD_STATUSES = frozenset({OrderStatus.CREATED, OrderStatus.PENDING})


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, index=True, nullable=False)
    store_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.CREATED.value, index=True)

    created_by = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("OrderItem", back_populates="order", lazy="selectin",
                         cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_orders_store_status", "store_id", "status"),
    )

    @property
    def reference(self) -> str:
        """Reference id stamped on the order's inventory movements."""
        return f"order:{self.id}"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
