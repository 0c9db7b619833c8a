"""Shipment tracker: creates shipments and drives their delivery state machine.

There is no carrier integration. A new shipment starts PENDING and, after a
fixed delay, the tracker marks it DELIVERED on its own. That timer is
best-effort: if the write fails it is logged and dropped, and the shipment
stays PENDING until someone updates it by hand. Every other status change is
an explicit ``update_status`` call.
"""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog

from fulfillment.shipment.shipment import Shipment, ShipmentLine, ShipmentStatus, assert_can_transition
from fulfillment.shipment.tracking import generate_tracking_number
from ordering.order.order import OrderItem
from shared.errors import ShipmentCreationFailed
from shared.scheduler.port import ScheduledTask, Scheduler
from shared.store.port import Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)

DEFAULT_DELIVERY_DELAY = 180.0


class ShipmentTracker:
    def __init__(
        self,
        store: Store,
        scheduler: Scheduler,
        delivery_delay: float = DEFAULT_DELIVERY_DELAY,
        tracking_prefix: str = "SIM",
        now: Callable[[], datetime] | None = None,
    ):
        self.shipments = repository_for(store, Shipment)
        self.scheduler = scheduler
        self.delivery_delay = delivery_delay
        self.tracking_prefix = tracking_prefix
        self._now = now or (lambda: datetime.now(UTC))

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    async def create_shipment(self, order_id: str, items: Sequence[OrderItem] = ()) -> Shipment:
        """Write a PENDING shipment with a fresh tracking number."""
        shipment = Shipment(
            order_id=order_id,
            tracking_number=generate_tracking_number(self.tracking_prefix),
            items=[ShipmentLine(product_id=i.product_id, quantity=i.quantity) for i in items],
            status=ShipmentStatus.PENDING.value,
            created_at=self._now(),
        )
        try:
            created = await self.shipments.add(shipment)
        except StoreError as exc:
            logger.error("Shipment creation failed", order_id=order_id, error=str(exc))
            raise ShipmentCreationFailed(order_id, f"Shipment creation failed: {exc}") from exc

        logger.info(
            "Shipment created",
            order_id=order_id,
            shipment_id=created.id,
            tracking_number=created.tracking_number,
        )
        return created

    # -------------------------------------------------------------------
    # Automated delivery
    # -------------------------------------------------------------------
    def schedule_delivery(self, shipment_id: str) -> ScheduledTask:
        """Arrange for ``deliver(shipment_id)`` to run after the delivery delay."""

        async def _deliver():
            await self.deliver(shipment_id)

        return self.scheduler.schedule_after(self.delivery_delay, _deliver, name=f"deliver-shipment-{shipment_id}")

    async def deliver(self, shipment_id: str) -> Shipment | None:
        """Move a PENDING shipment to DELIVERED. Returns None when nothing changed."""
        try:
            shipment = await self.shipments.get(shipment_id)
        except StoreError as exc:
            logger.error("Delivery update dropped", shipment_id=shipment_id, error=str(exc))
            return None

        if shipment.status != ShipmentStatus.PENDING.value:
            logger.info("Delivery update skipped", shipment_id=shipment_id, status=shipment.status)
            return None

        now = self._now()
        try:
            delivered = await self.shipments.update(
                shipment_id,
                status=ShipmentStatus.DELIVERED,
                delivered_at=now,
                updated_at=now,
            )
        except StoreError as exc:
            logger.error("Delivery update dropped", shipment_id=shipment_id, error=str(exc))
            return None

        logger.info("Shipment delivered", shipment_id=shipment_id, order_id=delivered.order_id)
        return delivered

    # -------------------------------------------------------------------
    # Explicit updates and lookups
    # -------------------------------------------------------------------
    async def update_status(self, shipment_id: str, status: ShipmentStatus | str) -> Shipment:
        """Apply a manual status change. Raises ``InvalidTransition`` when not allowed."""
        target = ShipmentStatus(status)
        shipment = await self.shipments.get(shipment_id)
        assert_can_transition(shipment.status, target)

        now = self._now()
        fields = {"status": target, "updated_at": now}
        if target is ShipmentStatus.DELIVERED:
            fields["delivered_at"] = now

        updated = await self.shipments.update(shipment_id, **fields)
        logger.info("Shipment status updated", shipment_id=shipment_id, status=target.value)
        return updated

    async def get_shipment(self, shipment_id: str) -> Shipment:
        return await self.shipments.get(shipment_id)

    async def get_shipment_for_order(self, order_id: str) -> Shipment | None:
        return await self.shipments.first(order_by="-created_at", order_id=order_id)
