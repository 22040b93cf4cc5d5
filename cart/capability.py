"""The ``add_to_cart`` capability shared by conversational front ends.

Chat (via model tool calls), SMS, or any other intent parser resolves a
free-text product reference against the menu and adds a quantity to a cart.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from core.models import MenuItem
from core.observability.logging import get_logger

from cart.cart import Cart, CartLine

logger = get_logger(__name__)

MODES = ("unit", "case")


def find_menu_item(menu: Iterable[MenuItem], product_ref: str) -> Optional[MenuItem]:
    """Resolve a product reference by name.

    Priority: exact (case-insensitive) name, then a name containing the
    reference, then a reference containing the name. First match wins.
    """
    ref = (product_ref or "").strip().lower()
    if not ref:
        return None

    items = [item for item in menu if item.name]
    matchers = (
        lambda name: name == ref,
        lambda name: ref in name,
        lambda name: name in ref,
    )
    for matches in matchers:
        for item in items:
            if matches(item.name.lower()):
                return item
    return None


@dataclass
class CartAction:
    """Outcome of one add_to_cart invocation."""
    product_ref: str
    quantity: int
    mode: str
    line: Optional[CartLine] = None

    @property
    def matched(self) -> bool:
        return self.line is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": "add_to_cart",
            "product_ref": self.product_ref,
            "quantity": self.quantity,
            "mode": self.mode,
            "matched": self.matched,
        }
        if self.line is not None:
            data["line"] = self.line.model_dump(by_alias=True)
        return data


def add_to_cart(
    cart: Cart,
    menu: Iterable[MenuItem],
    product_ref: str,
    quantity: float,
    mode: str = "case",
) -> CartAction:
    """Add ``quantity`` units or cases of the referenced product to ``cart``.

    An unresolved reference leaves the cart untouched and returns an action
    with ``matched`` False.

    Raises:
        ValueError: unknown mode or non-positive quantity
    """
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
    whole = math.floor(quantity)
    if whole <= 0:
        raise ValueError("quantity must be a positive whole number")

    item = find_menu_item(menu, product_ref)
    if item is None:
        logger.info(f"No menu item matches {product_ref!r}")
        return CartAction(product_ref=product_ref, quantity=whole, mode=mode)

    if mode == "case":
        line = CartLine.from_menu_item(item, mode="case", qty_cases=whole)
    else:
        line = CartLine.from_menu_item(item, mode="unit", qty_units=whole)

    return CartAction(product_ref=product_ref, quantity=whole, mode=mode, line=cart.add(line))
