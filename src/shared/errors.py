"""Error taxonomy for the fulfillment flow.

Every failure the orchestrator can report derives from ``FulfillmentError``.
Components raise these; the checkout orchestrator catches them and folds them
into an outcome value for the caller.

Terminal before any write:
    ValidationError, StockUnavailable, CustomerNotFound

Terminal with a partial write:
    OrderCreationFailed, OrderCreatedButItemsFailed

After the order exists:
    PaymentFailed, ShipmentCreationFailed

State machines:
    InvalidTransition, DuplicateReturn
"""

from dataclasses import dataclass
from enum import Enum


class FulfillmentError(Exception):
    """Base class for all fulfillment errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FulfillmentError):
    """Caller-correctable input problem. Nothing was written."""

    def __init__(self, messages: dict[str, list[str]]):
        self.messages = messages
        flat = "; ".join(f"{field}: {', '.join(errs)}" for field, errs in messages.items())
        super().__init__(flat or "Invalid input")


class CustomerNotFound(FulfillmentError):
    def __init__(self, principal: str | None, reason: str | None = None):
        self.principal = principal
        self.reason = reason
        message = f"No customer profile for principal {principal!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class LineFailureKind(Enum):
    NOT_FOUND = "Not_Found"
    UNAVAILABLE = "Unavailable"
    INSUFFICIENT_STOCK = "Insufficient_Stock"


@dataclass(frozen=True)
class LineFailure:
    """Why a single cart line could not be fulfilled."""

    product_id: str
    kind: LineFailureKind
    requested: int
    available: int | None = None
    detail: str | None = None

    def describe(self) -> str:
        if self.kind is LineFailureKind.INSUFFICIENT_STOCK:
            return f"{self.product_id}: only {self.available} available, requested {self.requested}"
        if self.kind is LineFailureKind.NOT_FOUND:
            return f"{self.product_id}: product not found"
        return f"{self.product_id}: stock could not be checked ({self.detail})"


class StockUnavailable(FulfillmentError):
    """One or more cart lines cannot be satisfied. Carries every failing line."""

    def __init__(self, failures: list[LineFailure]):
        self.failures = list(failures)
        super().__init__("Stock check failed: " + "; ".join(f.describe() for f in self.failures))

    @property
    def product_ids(self) -> list[str]:
        return [f.product_id for f in self.failures]


# ---------------------------------------------------------------------------
# Order, payment, shipment writes
# ---------------------------------------------------------------------------
class OrderCreationFailed(FulfillmentError):
    """The order header could not be written."""


class OrderCreatedButItemsFailed(FulfillmentError):
    """The header exists but its line items could not all be written."""

    def __init__(self, order_id: str, message: str, written_items: int = 0):
        self.order_id = order_id
        self.written_items = written_items
        super().__init__(message)


class PaymentFailed(FulfillmentError):
    """The order exists but no payment record could be written."""

    def __init__(self, order_id: str, message: str):
        self.order_id = order_id
        super().__init__(message)


class ShipmentCreationFailed(FulfillmentError):
    def __init__(self, order_id: str, message: str):
        self.order_id = order_id
        super().__init__(message)


# ---------------------------------------------------------------------------
# State machines
# ---------------------------------------------------------------------------
class InvalidTransition(FulfillmentError):
    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition {entity} from {current} to {target}")


class DuplicateReturn(FulfillmentError):
    """An open return request already exists for this order line."""

    def __init__(self, order_id: str, product_id: str, return_id: str):
        self.order_id = order_id
        self.product_id = product_id
        self.return_id = return_id
        super().__init__(f"Return {return_id} is still open for order {order_id}, product {product_id}")
