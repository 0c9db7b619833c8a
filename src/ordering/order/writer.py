"""Order writer: persists the order header and then its line items.

The store has no cross-table transactions, so a header can outlive a failed
item write. That case is reported as ``OrderCreatedButItemsFailed`` with the
order id; nothing is rolled back.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from inventory.stock.guard import ValidatedCart
from ordering.order.order import Order, OrderItem
from shared.errors import OrderCreatedButItemsFailed, OrderCreationFailed
from shared.store.port import Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WrittenOrder:
    order: Order
    items: tuple[OrderItem, ...]


class OrderWriter:
    def __init__(self, store: Store, now: Callable[[], datetime] | None = None):
        self.orders = repository_for(store, Order)
        self.items = repository_for(store, OrderItem)
        self._now = now or (lambda: datetime.now(UTC))

    async def write(self, customer_id: str, cart: ValidatedCart) -> WrittenOrder:
        total = cart.total

        try:
            order = await self.orders.add(
                Order(customer_id=customer_id, total_amount=total, created_at=self._now())
            )
        except StoreError as exc:
            logger.error("Order header write failed", customer_id=customer_id, error=str(exc))
            raise OrderCreationFailed(f"Failed to place order: {exc}") from exc

        items: list[OrderItem] = []
        for line in cart.lines:
            try:
                item = await self.items.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                    )
                )
            except StoreError as exc:
                logger.error(
                    "Order item write failed",
                    order_id=order.id,
                    product_id=line.product_id,
                    written_items=len(items),
                    error=str(exc),
                )
                raise OrderCreatedButItemsFailed(
                    order.id,
                    f"Order {order.id} was created but its items could not be saved: {exc}",
                    written_items=len(items),
                ) from exc
            items.append(item)

        logger.info("Order written", order_id=order.id, items=len(items), total=str(order.total_amount))
        return WrittenOrder(order=order, items=tuple(items))
