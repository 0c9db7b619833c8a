"""Return workflow: return requests for order lines and their automated progress.

A new request starts PENDING. After the approval delay it becomes APPROVED,
and a short refund delay later REFUNDED, at which point the refund amount is
final and the order's payment is marked (partially) refunded. Both timed
steps are best-effort: a failed write is logged and dropped, and the earlier
step is never undone. A timed step whose starting state no longer holds
(because the request was declined or cancelled meanwhile) does nothing.

Whether a line may carry more than one open request is a policy switch
(``enforce_single_open_return``). It is off by default: the storefront checks
``get_latest_return_status`` before offering a return.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog

from ordering.order.order import OrderItem
from ordering.returns.return_request import ReturnRequest, ReturnStatus, assert_can_transition
from payments.payment.refund import PaymentRefunds
from shared.errors import DuplicateReturn, ValidationError
from shared.scheduler.port import Scheduler
from shared.store.port import Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)

DEFAULT_APPROVAL_DELAY = 180.0
DEFAULT_REFUND_DELAY = 5.0
REQUEST_TICK = timedelta(microseconds=1)


class ReturnWorkflow:
    def __init__(
        self,
        store: Store,
        scheduler: Scheduler,
        approval_delay: float = DEFAULT_APPROVAL_DELAY,
        refund_delay: float = DEFAULT_REFUND_DELAY,
        enforce_single_open_return: bool = False,
        refunds: PaymentRefunds | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.returns = repository_for(store, ReturnRequest)
        self.order_items = repository_for(store, OrderItem)
        self.scheduler = scheduler
        self.approval_delay = approval_delay
        self.refund_delay = refund_delay
        self.enforce_single_open_return = enforce_single_open_return
        self.refunds = refunds
        self._now = now or (lambda: datetime.now(UTC))

    # -------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------
    async def request_return(self, order_id: str | None, product_id: str | None, reason: str | None = None) -> ReturnRequest:
        """Open a PENDING return for one order line and schedule its approval.

        Raises ``ValidationError`` (nothing written) when an identifier is
        missing or the product is not a line of the order.
        """
        messages = {}
        if not order_id:
            messages["order_id"] = ["Missing order id for return"]
        if not product_id:
            messages["product_id"] = ["Missing product id for return"]
        if messages:
            raise ValidationError(messages)

        item = await self.order_items.first(order_id=order_id, product_id=product_id)
        if item is None:
            raise ValidationError({"product_id": [f"Product {product_id} is not part of order {order_id}"]})

        latest = await self.get_latest_return_status(order_id, product_id)
        if self.enforce_single_open_return and latest is not None and latest.is_open:
            raise DuplicateReturn(order_id, product_id, latest.id)

        # Request times for a line are strictly increasing
        requested_at = self._now()
        if latest is not None and latest.requested_at >= requested_at:
            requested_at = latest.requested_at + REQUEST_TICK

        request = await self.returns.add(
            ReturnRequest(
                order_id=order_id,
                product_id=product_id,
                reason=reason or "Requested via app",
                status=ReturnStatus.PENDING.value,
                refund_amount=item.subtotal,
                requested_at=requested_at,
            )
        )
        logger.info(
            "Return requested",
            return_id=request.id,
            order_id=order_id,
            product_id=product_id,
            refund_amount=str(request.refund_amount),
        )

        self._schedule(self.approval_delay, self.approve, request.id, "approve-return")
        return request

    async def get_latest_return_status(self, order_id: str, product_id: str) -> ReturnRequest | None:
        """The most recently requested return for the line, or None."""
        return await self.returns.first(order_by="-requested_at", order_id=order_id, product_id=product_id)

    # -------------------------------------------------------------------
    # Automated transitions
    # -------------------------------------------------------------------
    async def approve(self, return_id: str) -> ReturnRequest | None:
        approved = await self._advance(return_id, ReturnStatus.PENDING, ReturnStatus.APPROVED)
        if approved is not None:
            self._schedule(self.refund_delay, self.refund, return_id, "refund-return")
        return approved

    async def refund(self, return_id: str) -> ReturnRequest | None:
        refunded = await self._advance(
            return_id,
            ReturnStatus.APPROVED,
            ReturnStatus.REFUNDED,
            refunded_at=self._now(),
        )
        if refunded is not None and self.refunds is not None:
            try:
                await self._sync_payment_refund(refunded.order_id)
            except StoreError as exc:
                logger.error("Payment refund update dropped", return_id=return_id, error=str(exc))
        return refunded

    async def refunded_total(self, order_id: str) -> Decimal:
        """Sum of the refund amounts of every REFUNDED request on the order."""
        refunded = await self.returns.find(order_id=order_id, status=ReturnStatus.REFUNDED)
        return sum((r.refund_amount for r in refunded), Decimal("0.00"))

    async def _sync_payment_refund(self, order_id: str) -> None:
        """Write the order's refunded total to its payment until the total stops moving.

        Refunds finishing concurrently each write the sum they saw; re-reading
        after the write makes the last writer settle on the final sum.
        """
        total = await self.refunded_total(order_id)
        while True:
            await self.refunds.set_refunded_total(order_id, total)
            current = await self.refunded_total(order_id)
            if current == total:
                return
            total = current

    async def _advance(self, return_id: str, source: ReturnStatus, target: ReturnStatus, **extra) -> ReturnRequest | None:
        try:
            request = await self.returns.get(return_id)
            if request.status != source.value:
                logger.info(
                    "Return transition skipped",
                    return_id=return_id,
                    status=request.status,
                    target=target.value,
                )
                return None
            updated = await self.returns.update(return_id, status=target, updated_at=self._now(), **extra)
        except StoreError as exc:
            logger.error("Return transition dropped", return_id=return_id, target=target.value, error=str(exc))
            return None

        logger.info("Return status updated", return_id=return_id, status=target.value)
        return updated

    def _schedule(self, delay: float, step, return_id: str, label: str) -> None:
        async def _run():
            await step(return_id)

        self.scheduler.schedule_after(delay, _run, name=f"{label}-{return_id}")

    # -------------------------------------------------------------------
    # Explicit transitions
    # -------------------------------------------------------------------
    async def decline_return(self, return_id: str) -> ReturnRequest:
        return await self._explicit(return_id, ReturnStatus.DECLINED)

    async def cancel_return(self, return_id: str) -> ReturnRequest:
        return await self._explicit(return_id, ReturnStatus.CANCELLED)

    async def _explicit(self, return_id: str, target: ReturnStatus) -> ReturnRequest:
        request = await self.returns.get(return_id)
        assert_can_transition(request.status, target)
        updated = await self.returns.update(return_id, status=target, updated_at=self._now())
        logger.info("Return status updated", return_id=return_id, status=target.value)
        return updated
