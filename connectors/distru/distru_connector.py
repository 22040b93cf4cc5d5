"""Distru ERP Connector.

Resource fetchers for the Distru API: packages, products, in-process orders,
companies and users, plus order creation. Every fetcher returns normalized
canonical types; Distru row shapes do not leak past this module.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from connectors.distru.distru_client import (
    DistruApiClient,
    DistruApiConfig,
    PageResult,
    QueryParams,
)
from connectors.distru.distru_models import (
    DistruCompany,
    DistruOrder,
    DistruPackage,
    DistruProduct,
    DistruUser,
)
from core.commitments import PROCESSING, extract_commitments
from core.config import DistruSettings
from core.errors import UpstreamFetchError
from core.models import (
    Customer,
    OrderCommitment,
    Package,
    Product,
    SalesOrder,
    StaffUser,
)
from core.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
RowModel = TypeVar("RowModel", bound=BaseModel)


@dataclass
class ResourceFetch(Generic[T]):
    """Normalized items from one paginated fetch, plus how the fetch went."""
    resource: str
    items: List[T] = field(default_factory=list)
    page_result: Optional[PageResult] = None

    @property
    def failed(self) -> bool:
        return bool(self.page_result and self.page_result.failed)

    @property
    def truncated(self) -> bool:
        return bool(self.page_result and self.page_result.truncated)

    def require(self) -> List[T]:
        """Items of a resource the caller cannot do without.

        Raises:
            UpstreamFetchError: the first page of the resource failed
        """
        if self.failed:
            raise UpstreamFetchError(
                self.resource,
                status_code=self.page_result.status_code,
                details=self.page_result.error_body,
            )
        return self.items


def _parse_rows(
    rows: List[Dict[str, Any]],
    model: Type[RowModel],
    resource: str,
) -> List[RowModel]:
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {resource} row: {e.error_count()} errors")
    return parsed


class DistruConnector:
    """Distru connector.

    Wraps a DistruApiClient with the per-resource endpoints, filters and page
    budgets. One connector is opened per inbound request.

    Usage:
        async with DistruConnector(settings) as distru:
            packages = await distru.fetch_packages(location_id)
    """

    def __init__(self, settings: DistruSettings, client: Optional[DistruApiClient] = None):
        self.settings = settings
        self._client = client or DistruApiClient(DistruApiConfig(
            base_url=settings.base_url or "",
            api_key=settings.api_key or "",
            page_size=settings.page_size,
            timeout_seconds=settings.timeout_seconds,
        ))

    async def __aenter__(self) -> "DistruConnector":
        await self._client.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._client.disconnect()

    async def _fetch(
        self,
        resource: str,
        model: Type[RowModel],
        convert: Callable[[RowModel], T],
        endpoint: Optional[str] = None,
        params: Optional[QueryParams] = None,
        budget: Optional[str] = None,
        keep: Optional[Callable[[RowModel], bool]] = None,
    ) -> ResourceFetch[T]:
        page_result = await self._client.paginate(
            resource,
            endpoint or resource,
            params=params,
            max_pages=self.settings.max_pages(budget or resource),
        )
        rows = _parse_rows(page_result.rows, model, resource)
        if keep is not None:
            rows = [row for row in rows if keep(row)]
        return ResourceFetch(resource, [convert(row) for row in rows], page_result)

    # =========================================================================
    # Inventory
    # =========================================================================

    async def fetch_packages(self, location_id: str) -> ResourceFetch[Package]:
        """Active packages held at ``location_id``."""
        result = await self._fetch(
            "packages",
            DistruPackage,
            DistruPackage.to_package,
            params=[("location_ids[]", location_id), ("statuses[]", "active")],
        )
        result.items = [
            p for p in result.items
            if p.is_active and p.location_id == location_id
        ]
        logger.info(f"Filtered packages: {len(result.items)} (active at location)")
        return result

    async def fetch_products(self) -> ResourceFetch[Product]:
        """The full product catalog."""
        return await self._fetch("products", DistruProduct, DistruProduct.to_product)

    # =========================================================================
    # Orders
    # =========================================================================

    async def fetch_processing_orders(self, budget: str = "orders") -> ResourceFetch[SalesOrder]:
        """PROCESSING orders with their line items."""
        return await self._fetch(
            "orders",
            DistruOrder,
            DistruOrder.to_order,
            params=[("statuses[]", PROCESSING)],
            budget=budget,
        )

    async def fetch_commitments(self, location_id: str) -> ResourceFetch[OrderCommitment]:
        """Committed quantities of PROCESSING orders at ``location_id``."""
        orders = await self.fetch_processing_orders()
        commitments = extract_commitments(orders.items, location_id)
        logger.info(f"Processed commitments: {len(commitments)} lines from {len(orders.items)} orders")
        return ResourceFetch("orders", commitments, orders.page_result)

    async def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST one order. Raises DistruApiError with the ERP's status and body on rejection."""
        return await self._client.create("orders", payload)

    # =========================================================================
    # Companies and Users
    # =========================================================================

    async def fetch_customers(self) -> ResourceFetch[Customer]:
        """Companies that buy from us (customer/client relationships, dispensaries, retailers)."""
        return await self._fetch(
            "companies",
            DistruCompany,
            DistruCompany.to_customer,
            keep=lambda company: company.is_customer,
        )

    async def fetch_users(self) -> ResourceFetch[StaffUser]:
        """Assignable users (not banned, with email and name), sorted by name."""
        result = await self._fetch(
            "users",
            DistruUser,
            DistruUser.to_staff_user,
            keep=lambda user: user.is_assignable,
        )
        result.items.sort(key=lambda u: u.full_name.casefold())
        return result
