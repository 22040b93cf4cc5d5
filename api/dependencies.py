"""Request-scoped dependencies for the API routes."""

from typing import AsyncIterator, List, Optional

from fastapi import Depends, Request, Response

from assistant.chat import ChatAssistant
from connectors.distru import DistruConnector
from core.availability import NetAvailabilityService
from core.config import StorefrontConfig
from core.models import MenuItem
from core.ordering import SubmissionGuard

PARTIAL_RESULTS_HEADER = "X-Partial-Results"


def get_config(request: Request) -> StorefrontConfig:
    return request.app.state.config


def get_submission_guard(request: Request) -> SubmissionGuard:
    return request.app.state.submission_guard


def get_chat_assistant(request: Request) -> ChatAssistant:
    return request.app.state.chat_assistant


async def get_connector(config: StorefrontConfig = Depends(get_config)) -> AsyncIterator[DistruConnector]:
    """One ERP connector (and HTTP session) per request."""
    config.validate(require_location=False)
    async with DistruConnector(config.distru) as connector:
        yield connector


def mark_partial(response: Response, partial: bool) -> None:
    """Flag responses built from truncated or failed upstream fetches."""
    if partial:
        response.headers[PARTIAL_RESULTS_HEADER] = "true"


async def load_menu(config: StorefrontConfig, location: Optional[str] = None) -> List[MenuItem]:
    """Build the menu outside a route's dependency graph (chat, SMS).

    Raises:
        ConfigurationError, UpstreamFetchError
    """
    location_id = config.resolve_location(location)
    config.validate(require_location=False)
    async with DistruConnector(config.distru) as connector:
        result = await NetAvailabilityService(connector).get_menu(location_id)
    return result.items
