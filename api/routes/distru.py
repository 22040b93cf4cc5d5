"""Distru pass-through endpoints and order submission.

List endpoints return normalized views of ERP resources. A fetch whose
pagination stopped early still returns what was collected, flagged with the
``X-Partial-Results`` header.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from api.dependencies import get_config, get_connector, get_submission_guard, mark_partial
from connectors.distru import DistruApiError, DistruConnector
from core.config import StorefrontConfig
from core.models import Customer, OrderCommitment, OrderSubmission, Package, Product, StaffUser
from core.observability.logging import get_logger
from core.ordering import OrderSubmissionService, SubmissionGuard


router = APIRouter()
logger = get_logger(__name__)


@router.get("/packages", response_model=List[Package])
async def list_packages(
    response: Response,
    location: Optional[str] = Query(None),
    config: StorefrontConfig = Depends(get_config),
    connector: DistruConnector = Depends(get_connector),
) -> List[Package]:
    """Active packages at a location."""
    fetch = await connector.fetch_packages(config.resolve_location(location))
    mark_partial(response, fetch.failed or fetch.truncated)
    return fetch.items


@router.get("/products", response_model=List[Product])
async def list_products(
    response: Response,
    connector: DistruConnector = Depends(get_connector),
) -> List[Product]:
    fetch = await connector.fetch_products()
    mark_partial(response, fetch.failed or fetch.truncated)
    return fetch.items


@router.get("/orders", response_model=List[OrderCommitment])
async def list_commitments(
    response: Response,
    location: Optional[str] = Query(None),
    config: StorefrontConfig = Depends(get_config),
    connector: DistruConnector = Depends(get_connector),
) -> List[OrderCommitment]:
    """Committed order lines of PROCESSING orders at a location."""
    fetch = await connector.fetch_commitments(config.resolve_location(location))
    mark_partial(response, fetch.failed or fetch.truncated)
    return fetch.items


@router.get("/companies", response_model=List[Customer])
async def list_customers(
    response: Response,
    connector: DistruConnector = Depends(get_connector),
) -> List[Customer]:
    """Companies with a customer relationship."""
    fetch = await connector.fetch_customers()
    mark_partial(response, fetch.failed or fetch.truncated)
    return fetch.items


@router.get("/users", response_model=List[StaffUser])
async def list_users(
    response: Response,
    connector: DistruConnector = Depends(get_connector),
) -> List[StaffUser]:
    """Staff who can own orders or be assigned as sales rep."""
    fetch = await connector.fetch_users()
    mark_partial(response, fetch.failed or fetch.truncated)
    return fetch.items


@router.post("/orders", status_code=201)
async def create_order(
    submission: OrderSubmission,
    config: StorefrontConfig = Depends(get_config),
    connector: DistruConnector = Depends(get_connector),
    guard: SubmissionGuard = Depends(get_submission_guard),
):
    """Create one PROCESSING order from a cart.

    Validation failures return 400 before the ERP is called. An ERP rejection
    returns the ERP's status with its raw body under ``details``.
    """
    service = OrderSubmissionService(
        connector,
        location_id=config.resolve_location(),
        app_name=config.app_name,
        guard=guard,
    )
    try:
        confirmation = await service.submit(submission)
    except DistruApiError as e:
        status = e.status_code or 502
        return JSONResponse(
            status_code=status,
            content={"error": "Order creation failed", "details": e.response_body or str(e), "status": status},
        )

    return confirmation.model_dump(exclude={"replayed"} if not confirmation.replayed else None)
