"""Net-availability aggregation: packages - commitments = purchasable menu."""

from core.availability.engine import (
    ThcAccumulator,
    build_menu,
    build_menu_item,
    MenuResult,
    NetAvailabilityService,
)

__all__ = [
    "ThcAccumulator",
    "build_menu",
    "build_menu_item",
    "MenuResult",
    "NetAvailabilityService",
]
