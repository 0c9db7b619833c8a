"""Payment record: the local ledger entry for an order.

One payment per order. No money moves through a gateway here: the row is the
ledger. Refunds are recorded as status changes on this row, never as new rows.

Status flow:
    COMPLETED → PARTIALLY_REFUNDED → REFUNDED
    COMPLETED → REFUNDED
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from shared.money import to_money
from shared.store.repository import Record


class PaymentStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    REFUNDED = "REFUNDED"


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"


class Payment(Record):
    table_name: ClassVar[str] = "payments"

    order_id: str = Field(min_length=1)
    amount_paid: Decimal
    method: PaymentMethod = PaymentMethod.CASH.value
    status: PaymentStatus = PaymentStatus.COMPLETED.value
    paid_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    refunded_amount: Decimal = Decimal("0.00")
    updated_at: datetime | None = None

    @field_validator("amount_paid", "refunded_amount", mode="before")
    @classmethod
    def _money(cls, value):
        return to_money(value)
