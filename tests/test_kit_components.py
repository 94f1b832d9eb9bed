"""
Tests for replacing a kit's bill of materials.
"""
import pytest
from sqlalchemy import select

from inventory_engine.core.exceptions import KitConfigurationError, KitCycleError, NotFoundError
from inventory_engine.models import KitComponent
from inventory_engine.schemas.inventory import KitComponentInput
from inventory_engine.services.kit_components import find_path_to, set_kit_components

from helpers import make_kit, make_product, stock_of


async def _edges(db, kit_id):
    result = await db.execute(
        select(KitComponent.component_id, KitComponent.quantity)
        .where(KitComponent.kit_id == kit_id)
        .order_by(KitComponent.display_order, KitComponent.id)
    )
    return [tuple(row) for row in result.all()]


class TestSetKitComponents:
    """Bill-of-materials edits."""

    @pytest.mark.asyncio
    async def test_replaces_edges_and_recalculates(self, db):
        paper = await make_product(db, "Paper", stock=10)
        pens = await make_product(db, "Pens", stock=4)
        kit = await make_kit(db, "Kit", [(paper, 2)])
        assert await stock_of(db, kit.id) == 5

        new_stock = await set_kit_components(db, kit.id, [
            KitComponentInput(component_id=pens.id, quantity=1, display_order=0),
            {"component_id": paper.id, "quantity": 5, "display_order": 1},
        ])

        assert new_stock == 2
        assert await stock_of(db, kit.id) == 2
        assert await _edges(db, kit.id) == [(pens.id, 1), (paper.id, 5)]

    @pytest.mark.asyncio
    async def test_clearing_components_zeroes_kit(self, db):
        paper = await make_product(db, "Paper", stock=10)
        kit = await make_kit(db, "Kit", [(paper, 2)])

        assert await set_kit_components(db, kit.id, []) == 0
        assert await _edges(db, kit.id) == []

    @pytest.mark.asyncio
    async def test_non_kit_rejected(self, db):
        paper = await make_product(db, "Paper", stock=10)
        pens = await make_product(db, "Pens", stock=4)

        with pytest.raises(KitConfigurationError):
            await set_kit_components(db, paper.id, [{"component_id": pens.id}])

    @pytest.mark.asyncio
    async def test_self_reference_rejected(self, db):
        kit = await make_kit(db, "Kit")

        with pytest.raises(KitCycleError) as exc_info:
            await set_kit_components(db, kit.id, [{"component_id": kit.id}])

        assert exc_info.value.path == [kit.id, kit.id]

    @pytest.mark.asyncio
    async def test_duplicate_component_rejected(self, db):
        paper = await make_product(db, "Paper", stock=10)
        kit = await make_kit(db, "Kit")

        with pytest.raises(KitConfigurationError) as exc_info:
            await set_kit_components(db, kit.id, [{"component_id": paper.id}, {"component_id": paper.id}])

        assert not isinstance(exc_info.value, KitCycleError)

    @pytest.mark.asyncio
    async def test_missing_component(self, db):
        kit = await make_kit(db, "Kit")

        with pytest.raises(NotFoundError):
            await set_kit_components(db, kit.id, [{"component_id": 8080}])

    @pytest.mark.asyncio
    async def test_transitive_cycle_rejected_and_edges_kept(self, db):
        paper = await make_product(db, "Paper", stock=10)
        inner = await make_kit(db, "Inner", [(paper, 1)])
        middle = await make_kit(db, "Middle", [(inner, 1)])
        outer = await make_kit(db, "Outer", [(middle, 1)])

        with pytest.raises(KitCycleError) as exc_info:
            await set_kit_components(db, inner.id, [{"component_id": outer.id}])

        assert exc_info.value.path == [inner.id, outer.id, middle.id, inner.id]
        assert await _edges(db, inner.id) == [(paper.id, 1)]


class TestFindPathTo:
    """Reachability through existing edges."""

    @pytest.mark.asyncio
    async def test_unreachable(self, db):
        paper = await make_product(db, "Paper", stock=1)
        kit = await make_kit(db, "Kit", [(paper, 1)])
        other = await make_kit(db, "Other")

        assert await find_path_to(db, [kit.id], other.id) is None

    @pytest.mark.asyncio
    async def test_path_through_nested_kits(self, db):
        paper = await make_product(db, "Paper", stock=1)
        inner = await make_kit(db, "Inner", [(paper, 1)])
        outer = await make_kit(db, "Outer", [(inner, 2)])

        assert await find_path_to(db, [outer.id], paper.id) == [outer.id, inner.id, paper.id]
