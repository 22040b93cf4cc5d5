"""Distru HTTP Client.

Low-level HTTP client for Distru API calls.
Handles authentication headers, page-number pagination and error mapping.

Each request is attempted exactly once: there are no retries and no backoff.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import asyncio
import json

import aiohttp

from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics

logger = get_logger(__name__)

QueryParams = Sequence[Tuple[str, str]]


class DistruApiError(Exception):
    """Base exception for Distru API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class DistruAuthenticationError(DistruApiError):
    """Authentication failed (401/403)."""
    pass


class DistruNotFoundError(DistruApiError):
    """Resource not found (404)."""
    pass


class DistruRateLimitError(DistruApiError):
    """Rate limit exceeded (429)."""
    pass


class DistruValidationError(DistruApiError):
    """Validation error from Distru (400/422)."""
    pass


_ERRORS_BY_STATUS = {
    400: DistruValidationError,
    401: DistruAuthenticationError,
    403: DistruAuthenticationError,
    404: DistruNotFoundError,
    422: DistruValidationError,
    429: DistruRateLimitError,
}


@dataclass
class DistruApiConfig:
    """Configuration for the Distru API client."""
    base_url: str
    api_key: str
    page_size: int = 25
    timeout_seconds: int = 30


@dataclass
class PageResult:
    """Rows accumulated by one pagination run.

    ``failed`` means the first page was not fetched, so ``rows`` is empty and
    ``status_code``/``error_body`` describe the failure. ``truncated`` means a
    later page failed and ``rows`` holds only the pages before it.
    """
    resource: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    truncated: bool = False
    failed: bool = False
    status_code: int = 0
    error_body: str = ""

    @property
    def complete(self) -> bool:
        return not (self.failed or self.truncated)


def extract_rows(envelope: Any) -> List[Dict[str, Any]]:
    """Row collection from a response envelope: ``data``, else ``items``, else ``results``."""
    if not isinstance(envelope, dict):
        return []
    for key in ("data", "items", "results"):
        rows = envelope.get(key)
        if rows is not None:
            return rows if isinstance(rows, list) else []
    return []


def has_more_pages(envelope: Any, page: int, row_count: int, page_size: int) -> bool:
    """Whether another page should be requested after ``page``.

    An explicit continuation signal in the envelope (JSON:API ``links.next`` or
    ``meta.total_pages``) wins; otherwise a short page marks the end.
    """
    if row_count == 0:
        return False

    if isinstance(envelope, dict):
        links = envelope.get("links")
        if isinstance(links, dict) and "next" in links:
            return bool(links["next"])

        meta = envelope.get("meta")
        if isinstance(meta, dict):
            total_pages = meta.get("total_pages", meta.get("last_page"))
            if isinstance(total_pages, (int, float)) and not isinstance(total_pages, bool):
                return page < int(total_pages)

    return row_count >= page_size


class DistruApiClient:
    """HTTP client for the Distru API.

    Provides:
    - Bearer-token authenticated API calls
    - Page-number pagination with partial results on failure
    - Error mapping to typed exceptions

    Usage:
        async with DistruApiClient(api_config) as client:
            result = await client.paginate("products", "products", max_pages=10)
            order = await client.create("orders", payload)
    """

    def __init__(self, api_config: DistruApiConfig, session: Optional[aiohttp.ClientSession] = None):
        self.api_config = api_config
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "DistruApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_url(self, endpoint: str) -> str:
        return f"{self.api_config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[QueryParams] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a single authenticated API request.

        Returns:
            Response JSON

        Raises:
            DistruAuthenticationError: Authentication failed
            DistruNotFoundError: Resource not found
            DistruRateLimitError: Rate limit exceeded
            DistruValidationError: Validation error
            DistruApiError: Other API or transport errors
        """
        if not self._session:
            raise DistruApiError("Not connected. Call connect() first.")

        url = self._build_url(endpoint)

        try:
            async with self._session.request(
                method,
                url,
                headers=self._get_headers(),
                params=list(params) if params else None,
                json=data,
            ) as response:
                response_text = await response.text(errors="replace")
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DistruApiError(f"Request failed: {type(e).__name__}: {e}") from e

        if status >= 400:
            error_cls = _ERRORS_BY_STATUS.get(status, DistruApiError)
            raise error_cls(f"API error {status}: {response_text}", status, response_text)

        if status == 204 or not response_text:
            return {}

        try:
            return json.loads(response_text)
        except ValueError as e:
            raise DistruApiError(f"Invalid JSON from {endpoint}: {e}", status, response_text) from e

    async def get_page(
        self,
        endpoint: str,
        page: int,
        params: Optional[QueryParams] = None,
    ) -> Dict[str, Any]:
        """Fetch one 1-based page of a collection endpoint."""
        query = list(params or []) + [("page[number]", str(page))]
        return await self._request("GET", endpoint, params=query)

    async def paginate(
        self,
        resource: str,
        endpoint: str,
        params: Optional[QueryParams] = None,
        max_pages: int = 10,
    ) -> PageResult:
        """Fetch successive pages until the data ends or the page budget runs out.

        Never raises for upstream failures: a failed page stops pagination and
        whatever was accumulated is returned, flagged on the PageResult.
        """
        metrics = get_metrics()
        result = PageResult(resource=resource)

        with with_correlation(resource=resource):
            for page in range(1, max_pages + 1):
                try:
                    envelope = await self.get_page(endpoint, page, params)
                except DistruApiError as e:
                    metrics.record_page_failed(resource)
                    logger.warning(
                        f"Page {page} failed: {e.status_code or 'transport error'}",
                        extra_fields={"page": page, "status_code": e.status_code},
                    )
                    if result.pages_fetched == 0:
                        result.failed = True
                        result.status_code = e.status_code
                        result.error_body = e.response_body or str(e)
                    else:
                        result.truncated = True
                        metrics.record_truncated_run(resource)
                    break

                rows = extract_rows(envelope)
                result.rows.extend(rows)
                result.pages_fetched += 1
                metrics.record_page_fetched(resource, len(rows))
                logger.debug(f"Page {page}: got {len(rows)} rows (total: {len(result.rows)})")

                if not has_more_pages(envelope, page, len(rows), self.api_config.page_size):
                    logger.debug(f"Reached end at page {page}")
                    break
            else:
                logger.info(f"Page budget of {max_pages} exhausted")

            logger.info(
                f"Fetched {len(result.rows)} {resource} rows in {result.pages_fetched} pages",
                extra_fields={"truncated": result.truncated, "failed": result.failed},
            )

        return result

    async def create(self, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a new entity.

        Args:
            endpoint: Entity endpoint
            data: Entity data

        Returns:
            Created entity envelope
        """
        return await self._request("POST", endpoint, data=data)
