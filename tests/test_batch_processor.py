"""
Tests for batch movement processing in strict and resilient modes.
"""
import pytest

from inventory_engine.core.exceptions import (
    InsufficientStockError,
    InvalidMovementError,
    NotFoundError,
)
from inventory_engine.schemas.inventory import BatchMode
from inventory_engine.services.batch_processor import record_movement_batch

from helpers import make_kit, make_product, movement, movements_of, stock_of


class TestStrictBatch:
    """All-or-nothing batches."""

    @pytest.mark.asyncio
    async def test_summed_decrements_rejected_and_nothing_written(self, db):
        product = await make_product(db, "Paper", stock=6)

        with pytest.raises(InsufficientStockError) as exc_info:
            await record_movement_batch(db, [
                movement(product.id, -4, "ORDER_PLACED"),
                movement(product.id, -4, "ORDER_PLACED"),
            ])

        item = exc_info.value.items[0]
        assert (item.available, item.requested) == (6, 8)
        assert await stock_of(db, product.id) == 6
        assert len(await movements_of(db, product.id)) == 1

    @pytest.mark.asyncio
    async def test_snapshots_chain_within_batch(self, db):
        product = await make_product(db, "Paper", stock=10)

        result = await record_movement_batch(db, [
            movement(product.id, -3, "ORDER_PLACED"),
            movement(product.id, -2, "DAMAGE"),
            movement(product.id, 5, "PURCHASE"),
        ])

        assert [(r.previous_stock, r.new_stock) for r in result.success] == [(10, 7), (7, 5), (5, 10)]
        assert [r.index for r in result.success] == [0, 1, 2]
        assert result.failed == []
        assert await stock_of(db, product.id) == 10

    @pytest.mark.asyncio
    async def test_increments_do_not_offset_decrements(self, db):
        product = await make_product(db, "Paper", stock=2)

        with pytest.raises(InsufficientStockError):
            await record_movement_batch(db, [
                movement(product.id, 5, "PURCHASE"),
                movement(product.id, -4, "ORDER_PLACED"),
            ])

        assert await stock_of(db, product.id) == 2

    @pytest.mark.asyncio
    async def test_validate_false_skips_check(self, db):
        product = await make_product(db, "Paper", stock=1)

        result = await record_movement_batch(db, [movement(product.id, -3)], validate=False)

        assert result.success[0].new_stock == -2
        assert await stock_of(db, product.id) == -2

    @pytest.mark.asyncio
    async def test_unknown_product_writes_nothing(self, db):
        product = await make_product(db, "Paper", stock=5)

        with pytest.raises(NotFoundError):
            await record_movement_batch(db, [
                movement(product.id, 2, "PURCHASE"),
                movement(31337, 1, "PURCHASE"),
            ])

        assert await stock_of(db, product.id) == 5

    @pytest.mark.asyncio
    async def test_malformed_line_writes_nothing(self, db):
        product = await make_product(db, "Paper", stock=5)

        with pytest.raises(InvalidMovementError):
            await record_movement_batch(db, [
                movement(product.id, 2, "PURCHASE"),
                movement(product.id, 2, "DAMAGE"),
            ])

        assert await stock_of(db, product.id) == 5

    @pytest.mark.asyncio
    async def test_empty_batch(self, db):
        result = await record_movement_batch(db, [])

        assert result.total == 0
        assert result.recalculated_kits == []


class TestResilientBatch:
    """Per-line success/failure batches."""

    @pytest.mark.asyncio
    async def test_short_lines_fail_others_apply(self, db):
        paper = await make_product(db, "Paper", stock=5)
        pens = await make_product(db, "Pens", stock=0)

        result = await record_movement_batch(db, [
            movement(paper.id, -3, "ORDER_PLACED"),
            movement(pens.id, -1, "ORDER_PLACED"),
        ], mode=BatchMode.RESILIENT)

        assert [r.product_id for r in result.success] == [paper.id]
        assert len(result.failed) == 1
        failure = result.failed[0]
        assert (failure.index, failure.product_id, failure.product_name) == (1, pens.id, "Pens")
        assert failure.code == "INSUFFICIENT_STOCK"
        assert "Available: 0, Requested: 1" in failure.reason
        assert await stock_of(db, paper.id) == 2
        assert await stock_of(db, pens.id) == 0

    @pytest.mark.asyncio
    async def test_every_line_accounted_for(self, db):
        paper = await make_product(db, "Paper", stock=5)
        kit = await make_kit(db, "Kit", [(paper, 1)])
        lines = [
            movement(paper.id, 1, "PURCHASE"),
            movement(424242, 1, "PURCHASE"),
            movement(paper.id, 1, "TELEPORT"),
            movement(kit.id, 1, "PURCHASE"),
            movement(paper.id, -1, "STORE_USE"),
        ]

        result = await record_movement_batch(db, lines, mode="resilient")

        assert result.total == len(lines)
        assert sorted([r.index for r in result.success] + [f.index for f in result.failed]) == list(range(len(lines)))
        failures = {f.index: f for f in result.failed}
        assert failures[1].code == "NOT_FOUND"
        assert failures[1].product_name == "Unknown"
        assert failures[2].code == "INVALID_MOVEMENT"
        assert failures[3].code == "INVALID_MOVEMENT"
        assert failures[3].product_name == "Kit"
        assert result.has_failures

    @pytest.mark.asyncio
    async def test_running_stock_consumed_by_earlier_lines(self, db):
        paper = await make_product(db, "Paper", stock=5)

        result = await record_movement_batch(db, [
            movement(paper.id, -3, "ORDER_PLACED"),
            movement(paper.id, -3, "ORDER_PLACED"),
            movement(paper.id, -2, "ORDER_PLACED"),
        ], mode=BatchMode.RESILIENT)

        assert [r.index for r in result.success] == [0, 2]
        assert result.failed[0].index == 1
        assert "Available: 2, Requested: 3" in result.failed[0].reason
        assert result.success[1].previous_stock == 2
        assert await stock_of(db, paper.id) == 0


class TestBatchKitRecalculation:
    """One recalculation pass per batch."""

    @pytest.mark.asyncio
    async def test_affected_kits_recalculated_once(self, db):
        paper = await make_product(db, "Paper", stock=10)
        pens = await make_product(db, "Pens", stock=10)
        kit = await make_kit(db, "Kit", [(paper, 2), (pens, 1)])
        other = await make_kit(db, "Other Kit", [(pens, 5)])

        result = await record_movement_batch(db, [
            movement(paper.id, -4, "ORDER_PLACED"),
            movement(pens.id, -5, "ORDER_PLACED"),
            movement(paper.id, -2, "ORDER_PLACED"),
        ])

        assert result.recalculated_kits == sorted([kit.id, other.id])
        assert await stock_of(db, kit.id) == 2
        assert await stock_of(db, other.id) == 1

    @pytest.mark.asyncio
    async def test_failed_lines_trigger_no_recalculation(self, db):
        paper = await make_product(db, "Paper", stock=0)
        await make_kit(db, "Kit", [(paper, 1)])

        result = await record_movement_batch(db, [movement(paper.id, -1, "DAMAGE")], mode=BatchMode.RESILIENT)

        assert result.recalculated_kits == []
