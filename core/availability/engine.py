"""Net-availability aggregation.

Combines active packages, the product catalog and in-process order
commitments for one location into the purchasable menu:

    net units = max(0, sum(package quantities) - sum(committed quantities))

Products whose stock is fully committed are left off the menu entirely.
The ERP's own available-quantity field does not account for orders that are
placed but not yet fulfilled, so commitments are subtracted at read time.
"""

import asyncio
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from connectors.distru import DistruConnector
from core.models import MenuItem, OrderCommitment, Package, Product
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import timed

logger = get_logger(__name__)


@dataclass
class ThcAccumulator:
    """Quantity-weighted THC running sums for one product."""
    weighted_thc: float = 0.0
    quantity: float = 0.0

    def add(self, thc_percentage: float, quantity: float) -> None:
        self.weighted_thc += thc_percentage * quantity
        self.quantity += quantity

    @property
    def average(self) -> Optional[float]:
        if self.quantity <= 0:
            return None
        return self.weighted_thc / self.quantity


def raw_quantity_by_product(packages: Iterable[Package], location_id: str) -> Dict[str, float]:
    """Summed available quantity per product over active packages at the location."""
    quantities: Dict[str, float] = defaultdict(float)
    for package in packages:
        if not package.product_id or not package.is_active:
            continue
        if package.location_id != location_id:
            continue
        quantities[package.product_id] += package.quantity_available
    return dict(quantities)


def thc_by_product(packages: Iterable[Package], location_id: str) -> Dict[str, ThcAccumulator]:
    """THC accumulators per product; only packages with quantity > 0 and THC > 0 count."""
    accumulators: Dict[str, ThcAccumulator] = defaultdict(ThcAccumulator)
    for package in packages:
        if not package.product_id or not package.is_active:
            continue
        if package.location_id != location_id:
            continue
        if package.quantity_available > 0 and package.thc_percentage_total > 0:
            accumulators[package.product_id].add(package.thc_percentage_total, package.quantity_available)
    return dict(accumulators)


def committed_by_product(
    commitments: Iterable[OrderCommitment],
    location_id: str,
) -> Dict[str, float]:
    """Summed committed quantity per product for lines at the location."""
    committed: Dict[str, float] = defaultdict(float)
    for commitment in commitments:
        if not commitment.product_id or commitment.location_id != location_id:
            continue
        committed[commitment.product_id] += commitment.quantity_committed
    return dict(committed)


def build_menu_item(
    product: Product,
    raw_units: float,
    committed_units: float,
    thc: Optional[ThcAccumulator],
) -> MenuItem:
    """Menu view of one product. ``units`` is clamped at zero."""
    units = max(0.0, raw_units - committed_units)
    case_size = product.units_per_case
    price_per_unit = product.unit_price

    return MenuItem(
        product_id=product.id,
        name=product.name or "Unnamed",
        brand=product.brand,
        category=product.category,
        units=units,
        case_size=case_size,
        cases_available=math.floor(units / case_size),
        price_per_unit=price_per_unit,
        price_per_case=price_per_unit * case_size,
        image_url=product.image_url,
        unit_type=product.unit_type,
        avg_thc_percentage=thc.average if thc else None,
    )


def build_menu(
    packages: Iterable[Package],
    products: Iterable[Product],
    commitments: Iterable[OrderCommitment],
    location_id: str,
) -> List[MenuItem]:
    """Net-available menu for one location, in catalog order.

    Only products with raw stock > 0 are considered, and only those whose
    net units remain > 0 after commitments are returned.
    """
    packages = list(packages)
    raw = raw_quantity_by_product(packages, location_id)
    thc = thc_by_product(packages, location_id)
    committed = committed_by_product(commitments, location_id)

    logger.info(f"{len(raw)} unique products have raw inventory")
    logger.info(f"{len(committed)} products have committed quantities")

    items = []
    for product in products:
        raw_units = raw.get(product.id, 0.0)
        if raw_units <= 0:
            continue
        item = build_menu_item(product, raw_units, committed.get(product.id, 0.0), thc.get(product.id))
        if item.units > 0:
            items.append(item)

    logger.info(f"Final menu has {len(items)} items (net available inventory)")
    return items


@dataclass
class MenuResult:
    """Menu plus whether any of its inputs was incomplete."""
    items: List[MenuItem]
    partial: bool = False


class NetAvailabilityService:
    """Fetches the three inputs concurrently and builds the menu.

    Packages and products are required: if either fails outright the request
    fails with the upstream status. Commitments are optional: if they fail the
    menu is built as if nothing were committed.
    """

    def __init__(self, connector: DistruConnector):
        self.connector = connector

    async def get_menu(self, location_id: str) -> MenuResult:
        with with_correlation(location_id=location_id), timed("menu"):
            packages, products, commitments = await asyncio.gather(
                self.connector.fetch_packages(location_id),
                self.connector.fetch_products(),
                self.connector.fetch_commitments(location_id),
            )

            package_items = packages.require()
            product_items = products.require()

            if commitments.failed:
                logger.warning("Orders fetch failed, continuing without order commitments")

            logger.info(
                f"Fetched {len(package_items)} packages, {len(product_items)} products, "
                f"{len(commitments.items)} order commitments"
            )

            items = build_menu(package_items, product_items, commitments.items, location_id)
            partial = packages.truncated or products.truncated or commitments.failed or commitments.truncated
            return MenuResult(items=items, partial=partial)

