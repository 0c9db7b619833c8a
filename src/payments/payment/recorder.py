"""Payment recorder: appends the ledger entry for a freshly created order."""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ordering.order.order import Order
from payments.payment.payment import Payment, PaymentStatus
from shared.errors import PaymentFailed
from shared.store.port import Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)


class PaymentRecorder:
    def __init__(self, store: Store, now: Callable[[], datetime] | None = None):
        self.payments = repository_for(store, Payment)
        self._now = now or (lambda: datetime.now(UTC))

    async def record(self, order: Order) -> Payment:
        """Write a COMPLETED payment for the full order total. No retries."""
        try:
            payment = await self.payments.add(
                Payment(
                    order_id=order.id,
                    amount_paid=order.total_amount,
                    status=PaymentStatus.COMPLETED.value,
                    paid_at=self._now(),
                )
            )
        except StoreError as exc:
            logger.error("Payment write failed", order_id=order.id, error=str(exc))
            raise PaymentFailed(order.id, f"Order placed, but payment failed: {exc}") from exc

        logger.info("Payment recorded", order_id=order.id, payment_id=payment.id, amount=str(payment.amount_paid))
        return payment
