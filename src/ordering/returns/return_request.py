"""ReturnRequest record and its state machine.

State Machine:
    PENDING → APPROVED → REFUNDED       (automated, delayed)
    PENDING → DECLINED                  (explicit)
    PENDING → CANCELLED                 (explicit)

Several requests may exist for one (order, product) pair; the most recently
requested one is authoritative.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from shared.errors import InvalidTransition
from shared.money import to_money
from shared.store.repository import Record


class ReturnStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REFUNDED = "REFUNDED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = {ReturnStatus.PENDING, ReturnStatus.APPROVED}

_VALID_TRANSITIONS = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED, ReturnStatus.DECLINED, ReturnStatus.CANCELLED},
    ReturnStatus.APPROVED: {ReturnStatus.REFUNDED},
    ReturnStatus.REFUNDED: set(),  # Terminal
    ReturnStatus.DECLINED: set(),  # Terminal
    ReturnStatus.CANCELLED: set(),  # Terminal
}


def assert_can_transition(current: str, target: ReturnStatus) -> None:
    if target not in _VALID_TRANSITIONS.get(ReturnStatus(current), set()):
        raise InvalidTransition("return request", current, target.value)


class ReturnRequest(Record):
    table_name: ClassVar[str] = "return_requests"

    order_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    reason: str | None = None
    status: ReturnStatus = ReturnStatus.PENDING.value
    refund_amount: Decimal = Decimal("0.00")
    requested_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None
    refunded_at: datetime | None = None

    @field_validator("refund_amount", mode="before")
    @classmethod
    def _money(cls, value):
        return to_money(value)

    @property
    def is_open(self) -> bool:
        return ReturnStatus(self.status) in OPEN_STATUSES
