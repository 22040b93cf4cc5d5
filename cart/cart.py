"""Storefront cart.

Client-side, pre-order state. Lines are not checked against live stock; the
case caps used by bulk fill are advisory.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from core.models import CartLineInput, MenuItem
from core.observability.logging import get_logger

from cart.store import CartTotals, CartTotalsStore

logger = get_logger(__name__)


class CartLine(CartLineInput):
    """A cart line whose unit and case prices stay consistent.

    Whichever price was edited last wins: the other is derived from it and
    the case size.
    """

    def set_unit_price(self, price: float) -> None:
        self.price_per_unit = price
        self.price_per_case = price * self.case_size

    def set_case_price(self, price: float) -> None:
        self.price_per_case = price
        self.price_per_unit = price / self.case_size

    @property
    def unit_price_used(self) -> float:
        """Per-unit price implied by the line's mode."""
        if self.mode == "case":
            return self.price_per_case / self.case_size
        return self.price_per_unit

    def merges_with(self, other: "CartLineInput") -> bool:
        return (
            self.product_id == other.product_id
            and self.price_per_unit == other.price_per_unit
            and self.price_per_case == other.price_per_case
            and self.mode == other.mode
        )

    @classmethod
    def from_menu_item(
        cls,
        item: MenuItem,
        mode: str = "case",
        qty_units: float = 0,
        qty_cases: float = 0,
    ) -> "CartLine":
        return cls(
            product_id=item.product_id,
            name=item.name,
            brand=item.brand,
            case_size=item.case_size,
            image_url=item.image_url,
            mode=mode,
            qty_units=max(0, math.floor(qty_units)),
            qty_cases=max(0, math.floor(qty_cases)),
            price_per_unit=item.price_per_unit,
            price_per_case=item.price_per_case,
        )


class Cart:
    """Ordered collection of cart lines, optionally mirrored into a totals store."""

    def __init__(self, totals_store: Optional[CartTotalsStore] = None):
        self.lines: List[CartLine] = []
        self.totals_store = totals_store

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def add(self, line: CartLine) -> CartLine:
        """Add a line, merging quantities into an existing line with the same
        product, prices and mode."""
        target = next((existing for existing in self.lines if existing.merges_with(line)), None)
        if target is None:
            target = line.model_copy()
            self.lines.append(target)
        else:
            target.qty_units += line.qty_units
            target.qty_cases += line.qty_cases

        if self.totals_store is not None and line.total_units > 0:
            self.totals_store.add(line.total_units, line.unit_price_used, line.case_size)
        return target

    def remove(self, product_id: str) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]

    def clear(self) -> None:
        self.lines = []
        if self.totals_store is not None:
            self.totals_store.reset()

    def totals(self) -> CartTotals:
        units = sum(line.total_units for line in self.lines)
        cases = sum(math.floor(line.total_units / line.case_size) for line in self.lines)
        subtotal = sum(line.line_total for line in self.lines)
        return CartTotals(units=units, cases=cases, subtotal=subtotal)


@dataclass
class BulkFillResult:
    added: int
    lines: List[CartLine]


def bulk_fill(
    cart: Cart,
    menu: Iterable[MenuItem],
    brand: str,
    category: str,
    cases: int,
) -> BulkFillResult:
    """Add ``cases`` cases of every menu item of a brand and category.

    Items without a whole case in stock are skipped; the quantity per item is
    capped at its cases available.

    Raises:
        ValueError: brand or category missing, or cases < 1
    """
    if not brand or not category or cases < 1:
        raise ValueError("Please select a quantity, brand, and category for bulk fill.")

    matching = [
        item for item in menu
        if item.brand == brand and item.category == category and item.cases_available > 0
    ]
    if not matching:
        logger.info(f'No products found for brand "{brand}" in category "{category}" with available case stock')

    added = []
    for item in matching:
        quantity = min(cases, item.cases_available)
        if quantity > 0:
            added.append(cart.add(CartLine.from_menu_item(item, mode="case", qty_cases=quantity)))

    return BulkFillResult(added=len(added), lines=added)
