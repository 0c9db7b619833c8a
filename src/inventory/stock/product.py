"""Product record: owned by the catalogue, referenced here for price and stock.

Only the stock adjuster writes to products, and only the ``stock`` column.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import Field, field_validator

from shared.money import to_money
from shared.store.repository import Record


class Product(Record):
    table_name: ClassVar[str] = "products"

    name: str | None = None
    price: Decimal = Decimal("0.00")
    stock: int = Field(default=0, ge=0)
    updated_at: datetime | None = None

    @field_validator("price", mode="before")
    @classmethod
    def _money(cls, value):
        return to_money(value)

    @field_validator("stock", mode="before")
    @classmethod
    def _missing_stock_is_zero(cls, value):
        return 0 if value is None else value
