"""Inventory guard: checks every cart line against current stock before any write.

All lines are checked, concurrently, and every problem is reported at once.
A product that cannot be fetched is reported as unavailable for that line
rather than aborting the whole check. The guard never writes.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

import pydantic
import structlog

from inventory.stock.product import Product
from ordering.cart.cart import CartLine
from shared.concurrency import gather_bounded
from shared.errors import LineFailure, LineFailureKind, StockUnavailable
from shared.money import line_total, sum_money
from shared.store.port import RecordNotFound, Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ValidatedLine:
    """A cart line paired with the product snapshot it was checked against."""

    line: CartLine
    product: Product

    @property
    def product_id(self) -> str:
        return self.line.product_id

    @property
    def quantity(self) -> int:
        return self.line.quantity

    @property
    def unit_price(self) -> Decimal:
        return self.line.unit_price if self.line.unit_price is not None else self.product.price

    @property
    def subtotal(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)


@dataclass(frozen=True)
class ValidatedCart:
    lines: tuple[ValidatedLine, ...]

    @property
    def total(self) -> Decimal:
        return sum_money(line.subtotal for line in self.lines)

    def snapshot(self) -> dict[str, Product]:
        """Product state as read during the check, keyed by product id."""
        return {line.product_id: line.product for line in self.lines}


class InventoryGuard:
    def __init__(self, store: Store, max_concurrency: int = 8):
        self.products = repository_for(store, Product)
        self.max_concurrency = max_concurrency

    async def check(self, lines: Sequence[CartLine]) -> ValidatedCart:
        """Return the validated cart or raise ``StockUnavailable`` naming every bad line."""
        results = await gather_bounded(
            [lambda line=line: self._check_line(line) for line in lines],
            self.max_concurrency,
        )

        failures: list[LineFailure] = []
        validated: list[ValidatedLine] = []
        for result in results:
            if isinstance(result, LineFailure):
                failures.append(result)
            elif isinstance(result, ValidatedLine):
                validated.append(result)
            else:
                raise result

        if failures:
            logger.info(
                "Stock check failed",
                failed_products=[f.product_id for f in failures],
                lines=len(lines),
            )
            raise StockUnavailable(failures)

        logger.debug("Stock check passed", lines=len(validated))
        return ValidatedCart(tuple(validated))

    async def _check_line(self, line: CartLine) -> ValidatedLine | LineFailure:
        try:
            product = await self.products.get(line.product_id)
        except RecordNotFound:
            return LineFailure(line.product_id, LineFailureKind.NOT_FOUND, requested=line.quantity)
        except (StoreError, pydantic.ValidationError) as exc:
            logger.warning("Product lookup failed", product_id=line.product_id, error=str(exc))
            return LineFailure(
                line.product_id,
                LineFailureKind.UNAVAILABLE,
                requested=line.quantity,
                detail=str(exc),
            )

        if line.quantity > product.stock:
            return LineFailure(
                line.product_id,
                LineFailureKind.INSUFFICIENT_STOCK,
                requested=line.quantity,
                available=product.stock,
            )
        return ValidatedLine(line=line, product=product)
