"""Checkout orchestration: cart in, paid and shipped order out.

Steps, in order:

    1. validate principal and cart           -> OrderRejected(VALIDATION)
    2. inventory guard (no writes)            -> OrderRejected(STOCK_UNAVAILABLE)
    3. resolve customer                       -> OrderRejected(CUSTOMER_NOT_FOUND)
    4. write order header and items           -> OrderRejected(ORDER_CREATION_FAILED | ..._ITEMS_FAILED)
    5. record payment                         -> OrderPlacedPaymentFailed
    6. adjust stock      } concurrently       -> warnings
    7. create shipment   }                    -> PaidButShipmentFailed
    8. schedule delivery                      -> OrderPlaced

Steps 1 to 5 are strictly sequential and honour caller cancellation. Once a
payment exists, steps 6 to 8 run to completion even if the caller is
cancelled; the cancellation is re-raised afterwards.
"""

import asyncio
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

import structlog

from fulfillment.shipment.tracker import ShipmentTracker
from identity.customer.resolver import CustomerResolver
from inventory.stock.adjuster import StockAdjuster
from inventory.stock.guard import InventoryGuard, ValidatedCart
from ordering.cart.cart import CartLine, normalize_cart
from ordering.checkout.outcomes import (
    OrderPlaced,
    OrderPlacedPaymentFailed,
    OrderRejected,
    PaidButShipmentFailed,
    PartialFulfillmentWarning,
    PlacementOutcome,
    RejectionReason,
    WarningKind,
    stock_warnings,
)
from ordering.order.queries import OrderQueries
from ordering.order.writer import OrderWriter, WrittenOrder
from ordering.returns.return_request import ReturnRequest
from ordering.returns.workflow import ReturnWorkflow
from payments.payment.payment import Payment
from payments.payment.recorder import PaymentRecorder
from payments.payment.refund import PaymentRefunds
from shared.config import FulfillmentSettings
from shared.errors import (
    CustomerNotFound,
    OrderCreatedButItemsFailed,
    OrderCreationFailed,
    PaymentFailed,
    ShipmentCreationFailed,
    StockUnavailable,
    ValidationError,
)
from shared.logging import add_context, clear_context
from shared.scheduler.port import Scheduler
from shared.store.port import Store
from shared.store.timeouts import TimeoutStore

logger = structlog.get_logger(__name__)


class FulfillmentOrchestrator:
    def __init__(
        self,
        store: Store,
        scheduler: Scheduler,
        settings: FulfillmentSettings | None = None,
        *,
        now: Callable[[], datetime] | None = None,
    ):
        self.settings = settings or FulfillmentSettings()
        self.store = TimeoutStore(store, self.settings.store_timeout)
        self.scheduler = scheduler

        self.inventory = InventoryGuard(self.store, max_concurrency=self.settings.max_concurrency)
        self.customers = CustomerResolver(self.store)
        self.order_writer = OrderWriter(self.store, now=now)
        self.payments = PaymentRecorder(self.store, now=now)
        self.stock = StockAdjuster(self.store, max_concurrency=self.settings.max_concurrency, now=now)
        self.shipments = ShipmentTracker(
            self.store,
            scheduler,
            delivery_delay=self.settings.shipment_delivery_delay,
            tracking_prefix=self.settings.tracking_prefix,
            now=now,
        )
        self.returns = ReturnWorkflow(
            self.store,
            scheduler,
            approval_delay=self.settings.return_approval_delay,
            refund_delay=self.settings.return_refund_delay,
            enforce_single_open_return=self.settings.enforce_single_open_return,
            refunds=PaymentRefunds(self.store, now=now),
            now=now,
        )
        self.queries = OrderQueries(self.store)

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    async def place_order(
        self,
        principal: str | None,
        lines: Iterable[CartLine | Mapping] | None,
    ) -> PlacementOutcome:
        add_context(principal=principal)
        try:
            return await self._place_order(principal, lines)
        finally:
            clear_context("principal", "order_id")

    async def _place_order(self, principal, lines) -> PlacementOutcome:
        try:
            cart = self._validate(principal, lines)
        except ValidationError as exc:
            logger.info("Order rejected", reason=RejectionReason.VALIDATION.value, errors=exc.messages)
            return OrderRejected(RejectionReason.VALIDATION, exc)

        try:
            validated = await self.inventory.check(cart)
        except StockUnavailable as exc:
            logger.info("Order rejected", reason=RejectionReason.STOCK_UNAVAILABLE.value, products=exc.product_ids)
            return OrderRejected(RejectionReason.STOCK_UNAVAILABLE, exc)

        try:
            customer = await self.customers.resolve(principal)
        except CustomerNotFound as exc:
            logger.info("Order rejected", reason=RejectionReason.CUSTOMER_NOT_FOUND.value)
            return OrderRejected(RejectionReason.CUSTOMER_NOT_FOUND, exc)

        try:
            written = await self.order_writer.write(customer.id, validated)
        except OrderCreatedButItemsFailed as exc:
            add_context(order_id=exc.order_id)
            return OrderRejected(RejectionReason.ORDER_CREATED_BUT_ITEMS_FAILED, exc, order_id=exc.order_id)
        except OrderCreationFailed as exc:
            return OrderRejected(RejectionReason.ORDER_CREATION_FAILED, exc)

        add_context(order_id=written.order.id)

        try:
            payment = await self.payments.record(written.order)
        except PaymentFailed as exc:
            logger.error("Order unpaid", order_id=written.order.id, error=exc.message)
            return OrderPlacedPaymentFailed(order=written.order, items=written.items, error=exc)

        return await self._complete_committed(written, validated, payment)

    def _validate(self, principal, lines) -> list[CartLine]:
        messages: dict[str, list[str]] = {}
        if not principal:
            messages["principal"] = ["Customer principal is required"]

        cart: list[CartLine] = []
        try:
            cart = normalize_cart(lines)
        except ValidationError as exc:
            messages.update(exc.messages)

        if messages:
            raise ValidationError(messages)
        return cart

    async def _complete_committed(self, written: WrittenOrder, cart: ValidatedCart, payment: Payment) -> PlacementOutcome:
        """Run the post-payment steps to completion, deferring caller cancellation."""
        task = asyncio.ensure_future(self._fulfil(written, cart, payment))
        deferred = False
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if task.cancelled():
                    raise
                if not deferred:
                    logger.warning("Cancellation deferred until fulfilment completes", order_id=written.order.id)
                deferred = True

        outcome = task.result()
        if deferred:
            raise asyncio.CancelledError()
        return outcome

    async def _fulfil(self, written: WrittenOrder, cart: ValidatedCart, payment: Payment) -> PlacementOutcome:
        order = written.order
        stock_result, shipment_result = await asyncio.gather(
            self.stock.adjust(order.id, written.items, cart.snapshot()),
            self.shipments.create_shipment(order.id, written.items),
            return_exceptions=True,
        )

        warnings: list[PartialFulfillmentWarning] = []
        report = None
        if isinstance(stock_result, Exception):
            logger.error("Stock adjustment aborted", order_id=order.id, error=repr(stock_result))
            warnings.append(
                PartialFulfillmentWarning(WarningKind.STOCK_ADJUSTMENT_FAILED, f"Stock adjustment aborted: {stock_result}")
            )
        elif isinstance(stock_result, BaseException):
            raise stock_result
        else:
            report = stock_result
            warnings.extend(stock_warnings(report))

        if isinstance(shipment_result, Exception) and not isinstance(shipment_result, ShipmentCreationFailed):
            logger.error("Shipment creation crashed", order_id=order.id, error=repr(shipment_result))
            failure = ShipmentCreationFailed(order.id, f"Shipment creation failed: {shipment_result!r}")
            failure.__cause__ = shipment_result
            shipment_result = failure

        if isinstance(shipment_result, ShipmentCreationFailed):
            warnings.append(
                PartialFulfillmentWarning(WarningKind.SHIPMENT_CREATION_FAILED, shipment_result.message)
            )
            logger.warning("Order paid without shipment", order_id=order.id, warnings=len(warnings))
            return PaidButShipmentFailed(
                order=order,
                items=written.items,
                payment=payment,
                error=shipment_result,
                stock=report,
                warnings=tuple(warnings),
            )
        if isinstance(shipment_result, BaseException):
            raise shipment_result

        self.shipments.schedule_delivery(shipment_result.id)

        logger.info(
            "Order placed",
            order_id=order.id,
            total=str(order.total_amount),
            shipment_id=shipment_result.id,
            warnings=len(warnings),
        )
        return OrderPlaced(
            order=order,
            items=written.items,
            payment=payment,
            shipment=shipment_result,
            stock=report,
            warnings=tuple(warnings),
        )

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    async def request_return(self, order_id: str | None, product_id: str | None, reason: str | None = None) -> ReturnRequest:
        return await self.returns.request_return(order_id, product_id, reason)

    async def get_latest_return_status(self, order_id: str, product_id: str) -> ReturnRequest | None:
        return await self.returns.get_latest_return_status(order_id, product_id)

