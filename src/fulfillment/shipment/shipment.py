"""Shipment record and its delivery state machine.

State Machine:
    PENDING → PROCESSING → IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
    PENDING → DELIVERED                  (automated, after the delivery delay)
    any non-terminal → EXCEPTION → IN_TRANSIT | RETURNED
    PENDING | PROCESSING → CANCELLED
    DELIVERED → RETURNED

Only PENDING → DELIVERED is driven by the timer; every other transition is an
explicit call.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from shared.errors import InvalidTransition
from shared.store.repository import Record


class ShipmentStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"
    EXCEPTION = "EXCEPTION"


_VALID_TRANSITIONS = {
    ShipmentStatus.PENDING: {
        ShipmentStatus.PROCESSING,
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.DELIVERED,
        ShipmentStatus.CANCELLED,
        ShipmentStatus.EXCEPTION,
    },
    ShipmentStatus.PROCESSING: {
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.CANCELLED,
        ShipmentStatus.EXCEPTION,
    },
    ShipmentStatus.IN_TRANSIT: {
        ShipmentStatus.OUT_FOR_DELIVERY,
        ShipmentStatus.DELIVERED,
        ShipmentStatus.EXCEPTION,
    },
    ShipmentStatus.OUT_FOR_DELIVERY: {
        ShipmentStatus.DELIVERED,
        ShipmentStatus.EXCEPTION,
    },
    ShipmentStatus.EXCEPTION: {
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.RETURNED,
    },
    ShipmentStatus.DELIVERED: {ShipmentStatus.RETURNED},
    ShipmentStatus.CANCELLED: set(),  # Terminal
    ShipmentStatus.RETURNED: set(),  # Terminal
}


def assert_can_transition(current: str, target: ShipmentStatus) -> None:
    if target not in _VALID_TRANSITIONS.get(ShipmentStatus(current), set()):
        raise InvalidTransition("shipment", current, target.value)


class ShipmentLine(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class Shipment(Record):
    table_name: ClassVar[str] = "shipments"

    order_id: str = Field(min_length=1)
    tracking_number: str = Field(min_length=1)
    items: list[ShipmentLine] = Field(default_factory=list)
    status: ShipmentStatus = ShipmentStatus.PENDING.value
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    delivered_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_delivered(self) -> bool:
        return self.status == ShipmentStatus.DELIVERED.value
