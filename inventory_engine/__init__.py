"""
Inventory ledger and stock-derivation engine.

Function-level API; every call takes the caller's transaction handle
(an ``AsyncSession``) and never commits it.
"""
from inventory_engine.core.exceptions import (
    InventoryEngineError,
    NotFoundError,
    InvalidMovementError,
    InsufficientStockError,
    MultipleInsufficientStockError,
    KitCycleError,
    ShortfallItem,
)
from inventory_engine.schemas.inventory import BatchMode, BatchResult, MovementCreate, StockRequest
from inventory_engine.services import (
    record_movement,
    record_movement_batch,
    validate_availability,
    recalculate_kit_stock,
)

__version__ = "1.0.0"
