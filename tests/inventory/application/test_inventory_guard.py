"""Tests for the inventory guard's pre-write stock check."""

from decimal import Decimal

import pytest

from inventory.stock.guard import InventoryGuard
from ordering.cart.cart import CartLine
from shared.errors import LineFailureKind, StockUnavailable
from shared.store.timeouts import TimeoutStore


@pytest.fixture
def guard(store):
    return InventoryGuard(store, max_concurrency=2)


class TestPassingCheck:
    async def test_pairs_lines_with_snapshots(self, guard):
        cart = await guard.check([CartLine("P1", 2, Decimal("10.00")), CartLine("P2", 3)])

        assert [line.product_id for line in cart.lines] == ["P1", "P2"]
        assert cart.snapshot()["P1"].stock == 5
        assert cart.total == Decimal("95.00")

    async def test_catalogue_price_used_when_line_has_none(self, guard):
        cart = await guard.check([CartLine("P2", 1)])
        assert cart.lines[0].unit_price == Decimal("25.00")

    async def test_never_writes(self, guard, store):
        await guard.check([CartLine("P1", 5)])
        assert store.journal == []


class TestFailingCheck:
    async def test_insufficient_stock_reports_counts(self, guard):
        with pytest.raises(StockUnavailable) as exc:
            await guard.check([CartLine("P1", 10)])

        [failure] = exc.value.failures
        assert failure.kind is LineFailureKind.INSUFFICIENT_STOCK
        assert failure.available == 5
        assert failure.requested == 10

    async def test_reports_every_failing_line(self, guard):
        with pytest.raises(StockUnavailable) as exc:
            await guard.check([CartLine("P1", 1), CartLine("P3", 1), CartLine("P404", 1), CartLine("P2", 4)])

        kinds = {f.product_id: f.kind for f in exc.value.failures}
        assert kinds == {
            "P3": LineFailureKind.INSUFFICIENT_STOCK,
            "P404": LineFailureKind.NOT_FOUND,
            "P2": LineFailureKind.INSUFFICIENT_STOCK,
        }

    async def test_fetch_failure_marks_line_unavailable(self, guard, store):
        store.fail("products", "get", record_id="P2")

        with pytest.raises(StockUnavailable) as exc:
            await guard.check([CartLine("P1", 1), CartLine("P2", 1)])

        [failure] = exc.value.failures
        assert failure.product_id == "P2"
        assert failure.kind is LineFailureKind.UNAVAILABLE

    async def test_timeout_marks_line_unavailable(self, store):
        store.stall("products", "get", 2.0, record_id="P1")
        guard = InventoryGuard(TimeoutStore(store, timeout=0.05))

        with pytest.raises(StockUnavailable) as exc:
            await guard.check([CartLine("P1", 1)])

        assert exc.value.failures[0].kind is LineFailureKind.UNAVAILABLE
        assert "timed out" in exc.value.failures[0].detail
