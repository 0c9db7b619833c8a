"""Cart lines as handed over by the storefront at checkout.

The cart itself lives on the device; checkout receives a flat list of lines.
``normalize_cart`` validates the lines and merges repeated products so each
product appears once, which keeps the per-product stock writes disjoint.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

from shared.errors import ValidationError
from shared.money import to_money


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Decimal | None = None  # None: charge the catalogue price

    @classmethod
    def from_mapping(cls, data: Mapping) -> "CartLine":
        price = data.get("unit_price", data.get("price"))
        return cls(
            product_id=data.get("product_id", data.get("product")),
            quantity=data.get("quantity", data.get("qty")),
            unit_price=None if price is None else to_money(price),
        )


def _line_errors(line: CartLine) -> list[str]:
    errors = []
    if not line.product_id or not isinstance(line.product_id, str):
        errors.append("product_id is required")
    if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
        errors.append(f"quantity must be a positive integer, got {line.quantity!r}")
    if line.unit_price is not None and line.unit_price < 0:
        errors.append("unit_price must not be negative")
    return errors


def normalize_cart(lines: Iterable[CartLine | Mapping] | None) -> list[CartLine]:
    """Validate cart lines and merge duplicates, preserving first-seen order."""
    raw = list(lines or [])
    if not raw:
        raise ValidationError({"cart": ["Cart is empty"]})

    messages: dict[str, list[str]] = {}
    merged: dict[str, CartLine] = {}

    for index, entry in enumerate(raw):
        try:
            line = entry if isinstance(entry, CartLine) else CartLine.from_mapping(entry)
        except (AttributeError, ValueError) as exc:
            messages[f"lines[{index}]"] = [f"Unreadable cart line: {exc}"]
            continue

        errors = _line_errors(line)
        if errors:
            messages[f"lines[{index}]"] = errors
            continue

        existing = merged.get(line.product_id)
        if existing is None:
            merged[line.product_id] = line
        elif existing.unit_price != line.unit_price:
            messages[f"lines[{index}]"] = [f"Conflicting prices for product {line.product_id}"]
        else:
            merged[line.product_id] = replace(existing, quantity=existing.quantity + line.quantity)

    if messages:
        raise ValidationError(messages)
    return list(merged.values())
