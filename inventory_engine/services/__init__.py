from inventory_engine.services.movement_ledger import record_movement, adjust_stock
from inventory_engine.services.kit_stock import recalculate_kit_stock, derive_kit_stock
from inventory_engine.services.availability import validate_availability, expand_requirements
from inventory_engine.services.batch_processor import record_movement_batch
from inventory_engine.services.order_reservation import OrderStockReservation, order_stock_reservation
from inventory_engine.services.movement_history import list_movements, ledger_totals
from inventory_engine.services.reconciliation import reconcile_stock
from inventory_engine.services.kit_components import set_kit_components
