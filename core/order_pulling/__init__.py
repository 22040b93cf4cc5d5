"""Order-pulling rollup for fulfillment planning."""

from core.order_pulling.engine import (
    UNKNOWN_BRAND,
    build_order_pull_rollup,
    RollupResult,
    OrderPullingService,
)

__all__ = [
    "UNKNOWN_BRAND",
    "build_order_pull_rollup",
    "RollupResult",
    "OrderPullingService",
]
