from inventory_engine.schemas.inventory import (
    BatchMode,
    MovementCreate,
    StockRequest,
    BatchLineResult,
    BatchLineFailure,
    BatchResult,
    KitComponentInput,
    StockDiscrepancy,
)
