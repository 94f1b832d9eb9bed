"""
Batch Movement Processor

Applies a list of movements under one of two failure policies:

- STRICT: every line is checked and the summed decrements are validated
  before anything is written. Any problem raises and the batch writes
  nothing.
- RESILIENT: lines are attempted one at a time. A line that would fail
  (malformed, unknown product, kit target, not enough stock) is recorded in
  ``failed`` and leaves stock untouched; the rest are written.

Both keep an explicit running-stock map local to the call so several lines
against the same product chain their audit snapshots, and both finish with
a single kit recalculation over every kit touched by the batch.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import (
    InsufficientStockError,
    InventoryEngineError,
    NotFoundError,
    ShortfallItem,
)
from inventory_engine.schemas.inventory import (
    BatchLineFailure,
    BatchLineResult,
    BatchMode,
    BatchResult,
    MovementCreate,
    StockRequest,
)
from inventory_engine.services.availability import validate_availability
from inventory_engine.services.catalog import ProductState, load_product_states
from inventory_engine.services.kit_stock import recalculate_kits_for_components
from inventory_engine.services.movement_ledger import (
    MovementInput,
    coerce_movement,
    reject_kit_target,
    write_movement,
)

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_NAME = "Unknown"


async def _apply_line(
    db: Queryable,
    index: int,
    movement: MovementCreate,
    state: ProductState,
    running_stock: Dict[int, int],
) -> BatchLineResult:
    previous = running_stock.get(movement.product_id, state.stock)
    record = await write_movement(db, movement, previous)
    running_stock[movement.product_id] = record.new_stock
    return BatchLineResult(
        index=index,
        product_id=movement.product_id,
        product_name=state.name,
        quantity=movement.quantity,
        movement_id=record.id,
        previous_stock=record.previous_stock,
        new_stock=record.new_stock,
    )


async def _apply_strict(
    db: Queryable,
    movements: Sequence[MovementInput],
    validate: bool,
) -> Tuple[BatchResult, set]:
    parsed = [coerce_movement(m) for m in movements]
    result = BatchResult()
    if not parsed:
        return result, set()

    states = await load_product_states(db, {m.product_id for m in parsed})
    for movement in parsed:
        state = states.get(movement.product_id)
        if state is None:
            raise NotFoundError(f"Product not found: {movement.product_id}", product_id=movement.product_id)
        reject_kit_target(movement, state.is_kit)

    if validate:
        # Only decrements are checked; increments in the same batch do not offset them
        decrements = [
            StockRequest(product_id=m.product_id, quantity=-m.quantity)
            for m in parsed
            if m.quantity < 0
        ]
        await validate_availability(db, decrements)

    running_stock: Dict[int, int] = {}
    touched = set()
    for index, movement in enumerate(parsed):
        result.success.append(
            await _apply_line(db, index, movement, states[movement.product_id], running_stock)
        )
        if movement.quantity != 0:
            touched.add(movement.product_id)

    return result, touched


async def _apply_resilient(
    db: Queryable,
    movements: Sequence[MovementInput],
) -> Tuple[BatchResult, set]:
    result = BatchResult()

    parsed: List[Tuple[int, Optional[MovementCreate], Optional[InventoryEngineError]]] = []
    for index, raw in enumerate(movements):
        try:
            parsed.append((index, coerce_movement(raw), None))
        except InventoryEngineError as e:
            parsed.append((index, None, e))

    states = await load_product_states(db, {m.product_id for _, m, _ in parsed if m is not None})

    running_stock: Dict[int, int] = {}
    touched = set()
    for index, movement, error in parsed:
        state = states.get(movement.product_id) if movement is not None else None
        try:
            if error is not None:
                raise error
            if state is None:
                raise NotFoundError(f"Product not found: {movement.product_id}", product_id=movement.product_id)
            reject_kit_target(movement, state.is_kit)

            available = running_stock.get(movement.product_id, state.stock)
            if movement.quantity < 0 and available < -movement.quantity:
                raise InsufficientStockError([
                    ShortfallItem(
                        product_id=movement.product_id,
                        product_name=state.name,
                        available=available,
                        requested=-movement.quantity,
                    )
                ])

            result.success.append(await _apply_line(db, index, movement, state, running_stock))
            if movement.quantity != 0:
                touched.add(movement.product_id)

        except InventoryEngineError as e:
            product_id = movement.product_id if movement is not None else e.details.get("product_id")
            quantity = movement.quantity if movement is not None else e.details.get("quantity")
            result.failed.append(
                BatchLineFailure(
                    index=index,
                    product_id=product_id if isinstance(product_id, int) else None,
                    product_name=state.name if state is not None else UNKNOWN_PRODUCT_NAME,
                    quantity=quantity if isinstance(quantity, int) else None,
                    reason=e.message,
                    code=e.code,
                )
            )
            logger.warning(
                "Batch line %d rejected (product=%s): %s",
                index,
                product_id,
                e.message,
            )

    return result, touched


async def record_movement_batch(
    db: Queryable,
    movements: Sequence[MovementInput],
    mode: BatchMode = BatchMode.STRICT,
    validate: bool = True,
) -> BatchResult:
    """
    Apply a list of movements.

    Args:
        db: Transaction handle; the caller commits
        movements: MovementCreate objects or equivalent mappings
        mode: STRICT (all-or-nothing) or RESILIENT (per-line)
        validate: STRICT only; False skips the availability check, for
            intake batches that only add stock

    Returns:
        BatchResult; in RESILIENT mode len(success) + len(failed) equals
        len(movements)

    Raises (STRICT only):
        InsufficientStockError / MultipleInsufficientStockError,
        NotFoundError, InvalidMovementError
    """
    mode = BatchMode(mode)
    if mode == BatchMode.STRICT:
        result, touched = await _apply_strict(db, movements, validate)
    else:
        result, touched = await _apply_resilient(db, movements)

    recalculated = await recalculate_kits_for_components(db, touched)
    result.recalculated_kits = sorted(recalculated)

    logger.info(
        "Batch (%s) processed: %d applied, %d failed, %d kit(s) recalculated",
        mode.value,
        len(result.success),
        len(result.failed),
        len(result.recalculated_kits),
    )
    return result
