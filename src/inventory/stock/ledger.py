"""Stock adjustment ledger: one row per (order, product) stock decrement.

A row is written PENDING before the product's stock is touched and settled
to COMPLETED or FAILED afterwards. Any row that is not FAILED means the line
has been (or may have been) applied and must not be applied again. A row left
PENDING by a crash is resolved out of band.
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field

from shared.store.repository import Record


class LedgerStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StockAdjustmentEntry(Record):
    table_name: ClassVar[str] = "stock_adjustments"

    order_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    previous_stock: int
    new_stock: int = Field(ge=0)
    status: LedgerStatus = LedgerStatus.PENDING.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def blocks_reapply(self) -> bool:
        return LedgerStatus(self.status) is not LedgerStatus.FAILED
