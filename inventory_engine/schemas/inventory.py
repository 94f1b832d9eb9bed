"""
Pydantic schemas for the inventory engine's function-level API.

Inputs are validated schema-first: a MovementCreate that constructs is
well-formed apart from the direction rule, which the ledger checks.
"""
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from inventory_engine.models.inventory_movement import MovementType


class BatchMode(str, Enum):
    """Failure policy for a batch of movements."""
    STRICT = "strict"          # all-or-nothing
    RESILIENT = "resilient"    # per-line success/failure


# ==================== Movement Schemas ====================

class MovementCreate(BaseModel):
    """One requested stock change."""
    product_id: int = Field(..., gt=0)
    store_id: str = Field(..., min_length=1, max_length=64)
    movement_type: MovementType
    quantity: int = Field(..., strict=True, description="Positive adds stock, negative removes it")
    reason: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    reference_id: Optional[str] = Field(None, max_length=100)
    cost: Optional[Decimal] = Field(None, ge=0, description="Unit cost at the time of movement")
    price: Optional[Decimal] = Field(None, ge=0, description="Unit sell price at the time of movement")
    created_by: Optional[str] = Field(None, max_length=100)

    @field_validator("reason", "description", "created_by")
    @classmethod
    def blank_to_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class StockRequest(BaseModel):
    """Quantity of a product the caller wants to draw."""
    product_id: int = Field(..., gt=0)
    quantity: int


# ==================== Batch Result Schemas ====================

class BatchLineResult(BaseModel):
    """A movement line that was written."""
    index: int
    product_id: int
    product_name: str
    quantity: int
    movement_id: Optional[int] = None
    previous_stock: int
    new_stock: int


class BatchLineFailure(BaseModel):
    """A movement line that was rejected; stock untouched for this line."""
    index: int
    product_id: Optional[int] = None
    product_name: str
    quantity: Optional[int] = None
    reason: str
    code: str


class BatchResult(BaseModel):
    success: List[BatchLineResult] = Field(default_factory=list)
    failed: List[BatchLineFailure] = Field(default_factory=list)
    recalculated_kits: List[int] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.success) + len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


# ==================== Kit Schemas ====================

class KitComponentInput(BaseModel):
    """One bill-of-materials edge for set_kit_components."""
    component_id: int = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1, description="Units consumed per kit")
    display_order: int = Field(default=0, ge=0)


# ==================== Reconciliation Schemas ====================

class StockDiscrepancy(BaseModel):
    """Cached stock that disagrees with the ledger or the kit derivation."""
    product_id: int
    product_name: str
    is_kit: bool
    cached_stock: int
    expected_stock: int
    repaired: bool = False

    @property
    def drift(self) -> int:
        return self.cached_stock - self.expected_stock
