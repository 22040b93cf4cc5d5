"""Menu and order-pulling endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_config, get_connector, mark_partial
from connectors.distru import DistruConnector
from core.availability import NetAvailabilityService
from core.config import StorefrontConfig
from core.models import BrandPullRollup, MenuItem
from core.order_pulling import OrderPullingService


router = APIRouter()


@router.get("/menu", response_model=List[MenuItem])
async def get_menu(
    response: Response,
    location: Optional[str] = Query(None, description="Location id; defaults to DISTRU_LOCATION_ID"),
    config: StorefrontConfig = Depends(get_config),
    connector: DistruConnector = Depends(get_connector),
) -> List[MenuItem]:
    """Net-available menu for a location.

    Products whose stock is fully committed to processing orders are omitted.
    """
    location_id = config.resolve_location(location)
    result = await NetAvailabilityService(connector).get_menu(location_id)
    mark_partial(response, result.partial)
    return result.items


@router.get("/sales", response_model=List[BrandPullRollup])
async def get_order_pulling(
    response: Response,
    location: Optional[str] = Query(None, description="Location id; defaults to DISTRU_LOCATION_ID"),
    config: StorefrontConfig = Depends(get_config),
    connector: DistruConnector = Depends(get_connector),
) -> List[BrandPullRollup]:
    """What to pick for processing orders, grouped by brand."""
    location_id = config.resolve_location(location)
    result = await OrderPullingService(connector).get_rollup(location_id)
    mark_partial(response, result.partial)
    return result.brands
