"""Storefront cart state and the add_to_cart capability."""

from cart.store import CartTotals, CartTotalsStore
from cart.cart import BulkFillResult, Cart, CartLine, bulk_fill
from cart.capability import CartAction, add_to_cart, find_menu_item

__all__ = [
    "CartTotals",
    "CartTotalsStore",
    "BulkFillResult",
    "Cart",
    "CartLine",
    "bulk_fill",
    "CartAction",
    "add_to_cart",
    "find_menu_item",
]
