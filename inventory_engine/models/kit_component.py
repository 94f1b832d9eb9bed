"""
Kit bill-of-materials edge.

One row per (kit, component): ``quantity`` units of the component are
consumed by one unit of the kit. A product may be a component of several
kits, and a kit may itself be a component of another kit.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from inventory_engine.core.database import Base


class KitComponent(Base):
    __tablename__ = "kit_components"

    id = Column(Integer, primary_key=True, index=True)

    kit_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    component_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    # Units of component per one unit of kit
    quantity = Column(Integer, nullable=False, default=1)
    display_order = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    kit = relationship("Product", foreign_keys=[kit_id], back_populates="components")
    component = relationship("Product", foreign_keys=[component_id], back_populates="used_in_kits")

    __table_args__ = (
        UniqueConstraint("kit_id", "component_id", name="uq_kit_component"),
        CheckConstraint("kit_id <> component_id", name="ck_kit_component_not_self"),
        Index("ix_kit_components_kit", "kit_id"),
        Index("ix_kit_components_component", "component_id"),
    )

    def __repr__(self):
        return f"<KitComponent kit={self.kit_id} component={self.component_id} x{self.quantity}>"
