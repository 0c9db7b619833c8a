"""Order and OrderItem records.

An order header is written once and never changes afterwards; its total is
computed from the line items at creation time. Each OrderItem snapshots the
unit price charged, so later catalogue price changes do not touch past orders.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import Field, field_validator, model_validator

from shared.money import line_total, to_money
from shared.store.repository import Record


class Order(Record):
    table_name: ClassVar[str] = "orders"

    customer_id: str = Field(min_length=1)
    total_amount: Decimal
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("total_amount", mode="before")
    @classmethod
    def _money(cls, value):
        return to_money(value)


class OrderItem(Record):
    """One product line of an order."""

    table_name: ClassVar[str] = "order_items"

    order_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal
    subtotal: Decimal | None = None

    @field_validator("unit_price", "subtotal", mode="before")
    @classmethod
    def _money(cls, value):
        return None if value is None else to_money(value)

    @model_validator(mode="before")
    @classmethod
    def _fill_subtotal(cls, data):
        if isinstance(data, dict) and data.get("subtotal") is None:
            quantity, unit_price = data.get("quantity"), data.get("unit_price")
            if isinstance(quantity, int) and unit_price is not None:
                data = {**data, "subtotal": line_total(quantity, unit_price)}
        return data
