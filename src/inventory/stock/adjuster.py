"""Stock adjuster: decrements product stock once an order is paid.

Works from the product snapshot taken by the inventory guard, so no second
read is needed. Each product is written independently and concurrently; one
failure does not stop the others. Stock never goes below zero: a decrement
that would overshoot is clamped and logged.

Every (order, product) pair is adjusted at most once, tracked by rows in the
stock adjustment ledger so the guarantee holds across orchestrator instances
and restarts. A failed pair can be retried by an out-of-band repair.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog

from inventory.stock.ledger import LedgerStatus, StockAdjustmentEntry
from inventory.stock.product import Product
from ordering.order.order import OrderItem
from shared.concurrency import gather_bounded
from shared.store.port import Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)


class AdjustmentStatus(Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class StockAdjustment:
    product_id: str
    quantity: int
    status: AdjustmentStatus
    previous_stock: int | None = None
    new_stock: int | None = None
    clamped: bool = False
    error: str | None = None


@dataclass(frozen=True)
class StockAdjustmentReport:
    order_id: str
    adjustments: tuple[StockAdjustment, ...]

    @property
    def failed(self) -> list[StockAdjustment]:
        return [a for a in self.adjustments if a.status is AdjustmentStatus.FAILED]

    @property
    def is_complete(self) -> bool:
        return not self.failed


def clamp_stock(current: int, quantity: int) -> tuple[int, bool]:
    """Return (new stock, whether it was clamped at zero)."""
    remaining = current - quantity
    return max(0, remaining), remaining < 0


class StockAdjuster:
    def __init__(
        self,
        store: Store,
        max_concurrency: int = 8,
        now: Callable[[], datetime] | None = None,
    ):
        self.products = repository_for(store, Product)
        self.ledger = repository_for(store, StockAdjustmentEntry)
        self.max_concurrency = max_concurrency
        self._now = now or (lambda: datetime.now(UTC))

    async def adjust(
        self,
        order_id: str,
        items: Sequence[OrderItem],
        snapshot: Mapping[str, Product],
    ) -> StockAdjustmentReport:
        results = await gather_bounded(
            [lambda item=item: self._adjust_item(order_id, item, snapshot.get(item.product_id)) for item in items],
            self.max_concurrency,
        )

        adjustments = []
        for item, result in zip(items, results, strict=True):
            if isinstance(result, StockAdjustment):
                adjustments.append(result)
            elif isinstance(result, Exception):
                logger.error(
                    "Stock adjustment crashed",
                    order_id=order_id,
                    product_id=item.product_id,
                    error=repr(result),
                )
                adjustments.append(
                    StockAdjustment(item.product_id, item.quantity, AdjustmentStatus.FAILED, error=repr(result))
                )
            else:
                raise result

        report = StockAdjustmentReport(order_id=order_id, adjustments=tuple(adjustments))
        if report.is_complete:
            logger.info("Stock adjusted", order_id=order_id, items=len(adjustments))
        else:
            logger.warning(
                "Stock adjustment partially failed",
                order_id=order_id,
                failed_products=[a.product_id for a in report.failed],
            )
        return report

    async def _adjust_item(self, order_id: str, item: OrderItem, product: Product | None) -> StockAdjustment:
        if product is None:
            return StockAdjustment(
                item.product_id,
                item.quantity,
                AdjustmentStatus.FAILED,
                error="No stock snapshot for product",
            )

        new_stock, clamped = clamp_stock(product.stock, item.quantity)
        try:
            entries = await self.ledger.find(order_id=order_id, product_id=item.product_id)
            if any(e.blocks_reapply for e in entries):
                logger.info("Stock already adjusted for order line", order_id=order_id, product_id=item.product_id)
                return StockAdjustment(item.product_id, item.quantity, AdjustmentStatus.SKIPPED)

            entry = await self.ledger.add(
                StockAdjustmentEntry(
                    order_id=order_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    previous_stock=product.stock,
                    new_stock=new_stock,
                    created_at=self._now(),
                )
            )
        except StoreError as exc:
            logger.error("Stock ledger unavailable", order_id=order_id, product_id=item.product_id, error=str(exc))
            return StockAdjustment(item.product_id, item.quantity, AdjustmentStatus.FAILED, error=str(exc))

        if clamped:
            logger.warning(
                "Stock clamped at zero",
                order_id=order_id,
                product_id=item.product_id,
                stock=product.stock,
                quantity=item.quantity,
            )

        try:
            await self.products.update(item.product_id, stock=new_stock, updated_at=self._now())
        except StoreError as exc:
            logger.error("Stock update failed", order_id=order_id, product_id=item.product_id, error=str(exc))
            await self._settle(entry, LedgerStatus.FAILED)
            return StockAdjustment(
                item.product_id,
                item.quantity,
                AdjustmentStatus.FAILED,
                previous_stock=product.stock,
                error=str(exc),
            )

        await self._settle(entry, LedgerStatus.COMPLETED)
        return StockAdjustment(
            item.product_id,
            item.quantity,
            AdjustmentStatus.COMPLETED,
            previous_stock=product.stock,
            new_stock=new_stock,
            clamped=clamped,
        )

    async def _settle(self, entry: StockAdjustmentEntry, status: LedgerStatus) -> None:
        try:
            await self.ledger.update(entry.id, status=status, updated_at=self._now())
        except StoreError as exc:
            # A PENDING row still blocks a second decrement
            logger.error(
                "Stock ledger entry left pending",
                order_id=entry.order_id,
                product_id=entry.product_id,
                status=status.value,
                error=str(exc),
            )
