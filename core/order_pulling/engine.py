"""Order-pulling rollup.

Groups the committed lines of PROCESSING orders at one location by brand and
product, so the warehouse knows what to pick: cases (fractional), units and
dollar value per product, with brand totals.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set

from connectors.distru import DistruConnector
from core.commitments import extract_commitments
from core.models import BrandPullRollup, OrderCommitment, Product, ProductPull
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import timed

logger = get_logger(__name__)

UNKNOWN_BRAND = "Unknown Brand"


def _round2(value: float) -> float:
    return round(value, 2)


@dataclass
class PullAccumulator:
    """Running pick totals for one product."""
    product: Product
    cases: float = 0.0
    units: float = 0.0
    dollars: float = 0.0


def products_in_orders(commitments: Iterable[OrderCommitment], location_id: str) -> Set[str]:
    """Product ids with at least one committed line at the location."""
    return {
        c.product_id for c in commitments
        if c.product_id and c.location_id == location_id
    }


def accumulate_pulls(
    commitments: Iterable[OrderCommitment],
    products: Iterable[Product],
    location_id: str,
) -> Dict[str, PullAccumulator]:
    """Per-product pick totals, in first-seen order.

    Lines at other locations are ignored. Lines whose product is not in the
    catalog are skipped and logged.
    """
    commitments = list(commitments)
    qualifying = products_in_orders(commitments, location_id)
    catalog = {p.id: p for p in products}

    logger.info(f"Found {len(qualifying)} unique products in PROCESSING orders for this location")

    pulls: Dict[str, PullAccumulator] = OrderedDict()
    for line in commitments:
        if line.location_id != location_id or line.product_id not in qualifying:
            continue

        product = catalog.get(line.product_id)
        if product is None:
            logger.warning(
                f"Product not found in catalog: {line.product_id}",
                extra_fields={"order_id": line.order_id, "product_name": line.product_name},
            )
            continue

        quantity = line.quantity_committed
        pull = pulls.setdefault(product.id, PullAccumulator(product=product))
        pull.cases += quantity / product.units_per_case
        pull.units += quantity
        pull.dollars += line.unit_price * quantity

    return pulls


def build_order_pull_rollup(
    commitments: Iterable[OrderCommitment],
    products: Iterable[Product],
    location_id: str,
) -> List[BrandPullRollup]:
    """Brand rollups sorted by descending dollar value.

    Products within a brand are also sorted by descending dollar value. All
    case, unit and dollar figures are rounded to 2 decimals; brand totals are
    summed before rounding.
    """
    pulls = accumulate_pulls(commitments, products, location_id)

    brands: Dict[str, Dict] = OrderedDict()
    for pull in pulls.values():
        brand_name = pull.product.brand or UNKNOWN_BRAND
        brand = brands.setdefault(brand_name, {"products": [], "cases": 0.0, "units": 0.0, "dollars": 0.0})
        brand["products"].append(ProductPull(
            name=pull.product.name or "Unnamed Product",
            total_cases_to_pull=_round2(pull.cases),
            total_units_to_pull=_round2(pull.units),
            total_dollars_value=_round2(pull.dollars),
        ))
        brand["cases"] += pull.cases
        brand["units"] += pull.units
        brand["dollars"] += pull.dollars

    rollups = [
        BrandPullRollup(
            brand=brand_name,
            products=sorted(data["products"], key=lambda p: p.total_dollars_value, reverse=True),
            brand_total_cases=_round2(data["cases"]),
            brand_total_units=_round2(data["units"]),
            brand_total_dollars=_round2(data["dollars"]),
        )
        for brand_name, data in brands.items()
    ]
    rollups.sort(key=lambda b: b.brand_total_dollars, reverse=True)

    logger.info(f"Generated order pulling data for {len(rollups)} brands")
    return rollups


@dataclass
class RollupResult:
    """Brand rollups plus whether any of their inputs was incomplete."""
    brands: List[BrandPullRollup]
    partial: bool = False


class OrderPullingService:
    """Fetches processing orders and the catalog concurrently and builds the rollup."""

    def __init__(self, connector: DistruConnector):
        self.connector = connector

    async def get_rollup(self, location_id: str) -> RollupResult:
        with with_correlation(location_id=location_id), timed("order_pulling"):
            orders, products = await asyncio.gather(
                self.connector.fetch_processing_orders(budget="order_pulling"),
                self.connector.fetch_products(),
            )
            product_items = products.require()

            if orders.failed:
                logger.warning("Orders fetch failed, rollup has no order lines")

            commitments = extract_commitments(orders.items, location_id)
            logger.info(f"Processing {len(orders.items)} orders ({len(commitments)} lines at location)")
            brands = build_order_pull_rollup(commitments, product_items, location_id)
            partial = orders.failed or orders.truncated or products.truncated
            return RollupResult(brands=brands, partial=partial)
