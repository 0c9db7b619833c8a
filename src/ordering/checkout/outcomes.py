"""Checkout outcomes: what ``place_order`` hands back to the storefront.

Two questions matter to the caller and every outcome answers both:

    committed   Did anything get written? (an order row at least)
    succeeded   Is there a paid order the customer can see?

    Outcome                    committed   succeeded
    OrderRejected              no*         no       (*yes if only items failed)
    OrderPlacedPaymentFailed   yes         no
    PaidButShipmentFailed      yes         yes      (with warnings)
    OrderPlaced                yes         yes      (maybe with warnings)

Housekeeping failures after payment never turn a paid order into a failure;
they travel as ``PartialFulfillmentWarning`` values.
"""

from dataclasses import dataclass, field
from enum import Enum

from fulfillment.shipment.shipment import Shipment
from inventory.stock.adjuster import StockAdjustmentReport
from ordering.order.order import Order, OrderItem
from payments.payment.payment import Payment
from shared.errors import FulfillmentError, LineFailure, StockUnavailable


class RejectionReason(Enum):
    VALIDATION = "Validation"
    STOCK_UNAVAILABLE = "Stock_Unavailable"
    CUSTOMER_NOT_FOUND = "Customer_Not_Found"
    ORDER_CREATION_FAILED = "Order_Creation_Failed"
    ORDER_CREATED_BUT_ITEMS_FAILED = "Order_Created_But_Items_Failed"


class WarningKind(Enum):
    STOCK_ADJUSTMENT_FAILED = "Stock_Adjustment_Failed"
    SHIPMENT_CREATION_FAILED = "Shipment_Creation_Failed"


@dataclass(frozen=True)
class PartialFulfillmentWarning:
    """A non-fatal problem in a step that ran after payment."""

    kind: WarningKind
    message: str
    product_id: str | None = None


def stock_warnings(report: StockAdjustmentReport | None) -> tuple[PartialFulfillmentWarning, ...]:
    if report is None:
        return ()
    return tuple(
        PartialFulfillmentWarning(
            WarningKind.STOCK_ADJUSTMENT_FAILED,
            f"Stock update failed for product {a.product_id}: {a.error}",
            product_id=a.product_id,
        )
        for a in report.failed
    )


@dataclass(frozen=True)
class OrderRejected:
    reason: RejectionReason
    error: FulfillmentError
    order_id: str | None = None

    succeeded = False

    @property
    def committed(self) -> bool:
        return self.order_id is not None

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def line_failures(self) -> list[LineFailure]:
        return list(self.error.failures) if isinstance(self.error, StockUnavailable) else []


@dataclass(frozen=True)
class OrderPlacedPaymentFailed:
    """The order exists but is unpaid. Money and inventory now disagree."""

    order: Order
    items: tuple[OrderItem, ...]
    error: FulfillmentError

    succeeded = False
    committed = True

    @property
    def order_id(self) -> str:
        return self.order.id

    @property
    def message(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class PaidButShipmentFailed:
    """Order and payment exist; no shipment could be created."""

    order: Order
    items: tuple[OrderItem, ...]
    payment: Payment
    error: FulfillmentError
    stock: StockAdjustmentReport | None = None
    warnings: tuple[PartialFulfillmentWarning, ...] = field(default=())

    succeeded = True
    committed = True

    @property
    def order_id(self) -> str:
        return self.order.id

    @property
    def message(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class OrderPlaced:
    order: Order
    items: tuple[OrderItem, ...]
    payment: Payment
    shipment: Shipment
    stock: StockAdjustmentReport | None = None
    warnings: tuple[PartialFulfillmentWarning, ...] = field(default=())

    succeeded = True
    committed = True

    @property
    def order_id(self) -> str:
        return self.order.id

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


PlacementOutcome = OrderRejected | OrderPlacedPaymentFailed | PaidButShipmentFailed | OrderPlaced
