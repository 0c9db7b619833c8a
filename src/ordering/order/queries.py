"""Read side for a customer's orders: history pages and the order detail view."""

from dataclasses import dataclass, field

import structlog

from fulfillment.shipment.shipment import Shipment
from ordering.order.order import Order, OrderItem
from ordering.returns.return_request import ReturnRequest
from payments.payment.payment import Payment
from shared.errors import ValidationError
from shared.store.port import Store
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderDetail:
    order: Order
    items: tuple[OrderItem, ...]
    payment: Payment | None = None
    shipment: Shipment | None = None
    returns: dict[str, ReturnRequest] = field(default_factory=dict)  # product_id -> latest request

    def latest_return(self, product_id: str) -> ReturnRequest | None:
        return self.returns.get(product_id)


@dataclass(frozen=True)
class OrderPage:
    orders: tuple[Order, ...]
    page: int
    page_size: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


class OrderQueries:
    def __init__(self, store: Store):
        self.orders = repository_for(store, Order)
        self.items = repository_for(store, OrderItem)
        self.payments = repository_for(store, Payment)
        self.shipments = repository_for(store, Shipment)
        self.returns = repository_for(store, ReturnRequest)

    async def get_order_detail(self, order_id: str) -> OrderDetail:
        """Everything the order screen shows. Raises ``RecordNotFound`` for an unknown id."""
        order = await self.orders.get(order_id)
        items = await self.items.find(order_id=order_id)
        payment = await self.payments.first(order_id=order_id)
        shipment = await self.shipments.first(order_by="-created_at", order_id=order_id)

        latest: dict[str, ReturnRequest] = {}
        for request in await self.returns.find(order_by="-requested_at", order_id=order_id):
            latest.setdefault(request.product_id, request)

        return OrderDetail(
            order=order,
            items=tuple(items),
            payment=payment,
            shipment=shipment,
            returns=latest,
        )

    async def list_orders(self, customer_id: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> OrderPage:
        """Newest first. ``page`` is 1-based."""
        if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError({"page": [f"Invalid page {page} of size {page_size}"]})

        orders = await self.orders.find(
            order_by="-created_at",
            limit=page_size,
            offset=(page - 1) * page_size,
            customer_id=customer_id,
        )
        total = await self.count_orders(customer_id)
        logger.debug("Order history page", customer_id=customer_id, page=page, returned=len(orders), total=total)
        return OrderPage(orders=tuple(orders), page=page, page_size=page_size, total=total)

    async def count_orders(self, customer_id: str) -> int:
        return await self.orders.count(customer_id=customer_id)
