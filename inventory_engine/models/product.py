"""
Product model

``stock`` is the single source of truth for "how much is sellable right now".
For kits it is derived from the components and only written by the kit
stock derivation service; for everything else it only changes through the
movement ledger's atomic increment/decrement.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, Index, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from inventory_engine.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), unique=True, index=True, nullable=True)
    name = Column(String(255), nullable=False, index=True)

    # Pricing snapshot source for movements
    price = Column(Numeric(12, 2), nullable=True)
    cost = Column(Numeric(12, 2), nullable=True)

    # Inventory
    stock = Column(Integer, nullable=False, default=0)
    on_hold = Column(Integer, nullable=False, default=0)  # Reserved by pending orders
    is_kit = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )

    # Relationships
    components = relationship(
        "KitComponent",
        foreign_keys="KitComponent.kit_id",
        back_populates="kit",
        cascade="all, delete-orphan",
        order_by="KitComponent.display_order",
    )
    used_in_kits = relationship(
        "KitComponent",
        foreign_keys="KitComponent.component_id",
        back_populates="component",
    )
    movements = relationship("InventoryMovement", back_populates="product")

    __table_args__ = (
        Index("ix_products_kit", id, postgresql_where=(is_kit.is_(True))),
        CheckConstraint("on_hold >= 0", name="check_on_hold_non_negative"),
    )

    def __repr__(self):
        kind = "kit" if self.is_kit else "product"
        return f"<Product {self.id} ({kind}): {self.name!r} stock={self.stock}>"
