"""
Tests for the inventory-admin maintenance CLI.
"""
import pytest
from sqlalchemy import update

from inventory_engine.models import Product
from inventory_engine.scripts.inventory_admin import (
    build_parser,
    cmd_history,
    cmd_recalculate_kits,
    cmd_reconcile,
)

from helpers import make_kit, make_product, stock_of


class TestParser:
    """Argument parsing."""

    def test_recalculate_kits_repeatable(self):
        args = build_parser().parse_args(["recalculate-kits", "--kit-id", "3", "--kit-id", "5"])

        assert args.command == "recalculate-kits"
        assert args.kit_id == [3, 5]

    def test_reconcile_defaults(self):
        args = build_parser().parse_args(["reconcile"])

        assert args.product_id == []
        assert args.repair is False

    def test_history(self):
        args = build_parser().parse_args(["--log-level", "debug", "history", "7", "--limit", "5"])

        assert (args.product_id, args.limit, args.log_level) == (7, 5, "debug")

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """Commands run against a session."""

    @pytest.mark.asyncio
    async def test_recalculate_all_kits(self, db, capsys):
        paper = await make_product(db, "Paper", stock=10)
        kit = await make_kit(db, "Kit", [(paper, 2)])
        await db.execute(update(Product).where(Product.id == kit.id).values(stock=0))

        code = await cmd_recalculate_kits(db, build_parser().parse_args(["recalculate-kits"]))

        assert code == 0
        assert await stock_of(db, kit.id) == 5
        assert "Recalculated 1 kit(s)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_reconcile_exit_codes(self, db, capsys):
        paper = await make_product(db, "Paper", stock=10)
        await db.execute(update(Product).where(Product.id == paper.id).values(stock=7))

        assert await cmd_reconcile(db, build_parser().parse_args(["reconcile"])) == 1
        assert "[drift]" in capsys.readouterr().out

        assert await cmd_reconcile(db, build_parser().parse_args(["reconcile", "--repair"])) == 0
        assert "[repaired]" in capsys.readouterr().out
        assert await stock_of(db, paper.id) == 10

        assert await cmd_reconcile(db, build_parser().parse_args(["reconcile"])) == 0
        assert "All cached stock matches the ledger" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_history_output(self, db, capsys):
        paper = await make_product(db, "Paper", stock=10)

        assert await cmd_history(db, build_parser().parse_args(["history", str(paper.id)])) == 0
        out = capsys.readouterr().out
        assert "INITIAL_INTAKE" in out
        assert "0 -> 10" in out

    @pytest.mark.asyncio
    async def test_history_empty(self, db, capsys):
        assert await cmd_history(db, build_parser().parse_args(["history", "99"])) == 0
        assert "No movements for product 99" in capsys.readouterr().out
