"""Refund bookkeeping: reflects finished returns on the order's payment row."""

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

import structlog

from payments.payment.payment import Payment, PaymentStatus
from shared.money import to_money
from shared.store.port import Store
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)


def refund_status(refunded: Decimal, amount_paid: Decimal) -> PaymentStatus:
    if refunded <= 0:
        return PaymentStatus.COMPLETED
    if refunded >= amount_paid:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIALLY_REFUNDED


class PaymentRefunds:
    def __init__(self, store: Store, now: Callable[[], datetime] | None = None):
        self.payments = repository_for(store, Payment)
        self._now = now or (lambda: datetime.now(UTC))

    async def set_refunded_total(self, order_id: str, total: Decimal) -> Payment | None:
        """Write ``total`` as the order's refunded amount and derive the status from it.

        ``total`` is the full refunded sum for the order, not an increment, so
        repeated or reordered writes of the same total agree. It is capped at
        the amount paid. Returns None when the order has no payment. Store
        errors propagate.
        """
        payment = await self.payments.first(order_id=order_id)
        if payment is None:
            logger.warning("Refund for order without payment", order_id=order_id, total=str(total))
            return None

        refunded = min(to_money(total), payment.amount_paid)
        status = refund_status(refunded, payment.amount_paid)

        updated = await self.payments.update(
            payment.id,
            refunded_amount=refunded,
            status=status,
            updated_at=self._now(),
        )
        logger.info("Payment refund applied", order_id=order_id, refunded=str(refunded), status=status.value)
        return updated
