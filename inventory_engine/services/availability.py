"""
Availability Validator

Decides whether a set of requested quantities can be fulfilled from cached
stock, all-or-nothing. Kits are expanded into their components (through
nested kits) and merged with directly requested components, so a request
for a kit plus one of its own components is checked against the combined
draw on that component.

The combined check only holds within one call: callers composing several
requests must sum them and validate once.
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

from inventory_engine.core.database import Queryable
from inventory_engine.core.exceptions import (
    InsufficientStockError,
    KitCycleError,
    NotFoundError,
    ShortfallItem,
)
from inventory_engine.schemas.inventory import StockRequest
from inventory_engine.services.catalog import ProductState, load_kit_edges, load_product_states

logger = logging.getLogger(__name__)

RequestInput = Union[StockRequest, Mapping[str, Any], Tuple[int, int]]


def group_requests(requests: Iterable[RequestInput]) -> "OrderedDict[int, int]":
    """Sum requested quantities per product, keeping first-seen order."""
    grouped: "OrderedDict[int, int]" = OrderedDict()
    for request in requests:
        if isinstance(request, StockRequest):
            product_id, quantity = request.product_id, request.quantity
        elif isinstance(request, Mapping):
            product_id, quantity = request["product_id"], request["quantity"]
        else:
            product_id, quantity = request
        grouped[product_id] = grouped.get(product_id, 0) + int(quantity)
    return grouped


async def _accumulate(
    db: Queryable,
    requests: Mapping[int, int],
    totals: Dict[int, int],
    states: Dict[int, ProductState],
    ancestry: Tuple[int, ...],
) -> None:
    missing = [pid for pid in requests if pid not in states]
    if missing:
        states.update(await load_product_states(db, missing))
        for product_id in missing:
            if product_id not in states:
                raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)

    kit_requests = {
        pid: qty for pid, qty in requests.items()
        if states[pid].is_kit and qty > 0
    }
    for product_id, quantity in requests.items():
        if product_id not in kit_requests:
            totals[product_id] = totals.get(product_id, 0) + quantity

    if not kit_requests:
        return

    edges_by_kit = await load_kit_edges(db, kit_requests)
    for kit_id, kit_quantity in kit_requests.items():
        if kit_id in ancestry:
            path = ancestry[ancestry.index(kit_id):] + (kit_id,)
            raise KitCycleError(
                f"Kit {kit_id} contains itself: {' -> '.join(str(p) for p in path)}",
                path=path,
            )

        expanded: "OrderedDict[int, int]" = OrderedDict()
        for edge in edges_by_kit[kit_id]:
            if edge.quantity <= 0:
                continue
            expanded[edge.component_id] = expanded.get(edge.component_id, 0) + edge.quantity * kit_quantity

        if not expanded:
            # Nothing to build it from; checked against its own (zero) stock
            totals[kit_id] = totals.get(kit_id, 0) + kit_quantity
            continue

        await _accumulate(db, expanded, totals, states, ancestry + (kit_id,))


async def expand_requirements(
    db: Queryable,
    requests: Iterable[RequestInput],
) -> Tuple["OrderedDict[int, int]", Dict[int, ProductState]]:
    """
    Flatten requests into per-product draws on ledger-tracked stock.

    Returns (requirements, states): requirements maps each non-kit product
    (or component-less kit) to its total requested quantity, states holds
    the stock snapshot of every product visited.

    Raises NotFoundError for an unknown product and KitCycleError when a
    kit reaches itself through its components.
    """
    totals: "OrderedDict[int, int]" = OrderedDict()
    states: Dict[int, ProductState] = {}
    await _accumulate(db, group_requests(requests), totals, states, ())
    return totals, states


def find_shortfalls(
    requirements: Mapping[int, int],
    states: Mapping[int, ProductState],
) -> List[ShortfallItem]:
    """Every product whose stock cannot cover its positive requirement."""
    shortfalls = []
    for product_id, requested in requirements.items():
        state = states[product_id]
        # Non-positive totals are returns/increments; nothing to check
        if requested > 0 and state.stock < requested:
            shortfalls.append(
                ShortfallItem(
                    product_id=product_id,
                    product_name=state.name,
                    available=state.stock,
                    requested=requested,
                )
            )
    return shortfalls


async def validate_availability(db: Queryable, requests: Iterable[RequestInput]) -> None:
    """
    Check every requested quantity against stock, collecting all shortfalls.

    Raises:
        InsufficientStockError / MultipleInsufficientStockError: one or more
            products short, each with name, available and requested
        NotFoundError: a requested product or component does not exist
        KitCycleError: kit configuration loops back on itself
    """
    requirements, states = await expand_requirements(db, requests)
    if not requirements:
        return

    shortfalls = find_shortfalls(requirements, states)
    if shortfalls:
        logger.info(
            "Availability check failed for %d product(s): %s",
            len(shortfalls),
            ", ".join(f"{s.product_id} ({s.available}/{s.requested})" for s in shortfalls),
        )
        raise InsufficientStockError.from_items(shortfalls)
