"""
Inventory Engine Exception Hierarchy

All exceptions include code, message, and details for audit trail and
debugging. Callers translate InsufficientStockError into one itemized
message via ``to_dict()`` / ``items``; everything else is a generic failure.

Exception Hierarchy:
    InventoryEngineError
    ├── NotFoundError
    ├── InvalidMovementError
    ├── InsufficientStockError
    │   └── MultipleInsufficientStockError
    ├── KitConfigurationError
    │   └── KitCycleError
    └── InvalidOrderTransitionError
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class InventoryEngineError(Exception):
    """
    Base exception for all inventory engine errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "INVENTORY_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class NotFoundError(InventoryEngineError):
    """Referenced product or kit component does not exist."""
    default_code = "NOT_FOUND"

    def __init__(self, message: str, product_id: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["product_id"] = product_id
        super().__init__(message, details=details, **kwargs)
        self.product_id = product_id


class InvalidMovementError(InventoryEngineError):
    """Movement type outside the enumeration, malformed quantity, or kit target."""
    default_code = "INVALID_MOVEMENT"

    def __init__(
        self,
        message: str,
        product_id: Optional[int] = None,
        movement_type: Optional[str] = None,
        quantity: Any = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "movement_type": movement_type,
            "quantity": quantity,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# STOCK SHORTFALLS
# =============================================================================

@dataclass(frozen=True)
class ShortfallItem:
    """One product that cannot cover the requested quantity."""
    product_id: int
    product_name: str
    available: int
    requested: int


class InsufficientStockError(InventoryEngineError):
    """
    Requested quantity exceeds available stock.

    Always carries the full list of short items so the caller can render
    every shortfall at once. Use ``InsufficientStockError.from_items`` to get
    the single or multiple variant.
    """
    default_code = "INSUFFICIENT_STOCK"
    default_severity = "P3"

    def __init__(self, items: Sequence[ShortfallItem], message: Optional[str] = None, **kwargs):
        self.items: List[ShortfallItem] = list(items)
        details = kwargs.pop("details", {})
        details["items"] = [asdict(item) for item in self.items]
        super().__init__(message or self._render(self.items), details=details, **kwargs)

    @staticmethod
    def _render(items: Sequence[ShortfallItem]) -> str:
        item = items[0]
        return (
            f"Insufficient stock for {item.product_name}. "
            f"Available: {item.available}, Requested: {item.requested}"
        )

    @classmethod
    def from_items(cls, items: Sequence[ShortfallItem]) -> "InsufficientStockError":
        if len(items) > 1:
            return MultipleInsufficientStockError(items)
        return cls(items)


class MultipleInsufficientStockError(InsufficientStockError):
    """More than one product is short."""
    default_code = "MULTIPLE_INSUFFICIENT_STOCK"

    @staticmethod
    def _render(items: Sequence[ShortfallItem]) -> str:
        lines = "\n".join(
            f"- {i.product_name} (Available: {i.available}, Requested: {i.requested})"
            for i in items
        )
        return f"Insufficient stock for multiple products:\n{lines}"


# =============================================================================
# KIT CONFIGURATION
# =============================================================================

class KitConfigurationError(InventoryEngineError):
    """Bill-of-materials is unusable."""
    default_code = "KIT_CONFIGURATION_ERROR"
    default_severity = "P1"


class KitCycleError(KitConfigurationError):
    """A kit contains itself, directly or through nested kits."""
    default_code = "KIT_CYCLE_DETECTED"
    default_severity = "P0"

    def __init__(self, message: str, path: Sequence[int] = (), **kwargs):
        details = kwargs.pop("details", {})
        details["path"] = list(path)
        super().__init__(message, details=details, **kwargs)
        self.path = list(path)


# =============================================================================
# ORDERS
# =============================================================================

class InvalidOrderTransitionError(InventoryEngineError):
    """Order status change that has no inventory meaning."""
    default_code = "INVALID_ORDER_TRANSITION"

    def __init__(
        self,
        message: str,
        order_id: Optional[int] = None,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "order_id": order_id,
            "from_status": from_status,
            "to_status": to_status,
        })
        super().__init__(message, details=details, **kwargs)
