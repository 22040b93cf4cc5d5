"""Distru Connector Package.

HTTP client, row models and resource fetchers for the Distru ERP.
"""

from connectors.distru.distru_connector import DistruConnector, ResourceFetch
from connectors.distru.distru_client import (
    DistruApiClient,
    DistruApiConfig,
    DistruApiError,
    DistruAuthenticationError,
    DistruNotFoundError,
    DistruRateLimitError,
    DistruValidationError,
    PageResult,
)
from connectors.distru.distru_models import (
    DistruPackage,
    DistruProduct,
    DistruOrder,
    DistruOrderItem,
    DistruCompany,
    DistruUser,
)

__all__ = [
    # Connector
    "DistruConnector",
    "ResourceFetch",
    # Client
    "DistruApiClient",
    "DistruApiConfig",
    "DistruApiError",
    "DistruAuthenticationError",
    "DistruNotFoundError",
    "DistruRateLimitError",
    "DistruValidationError",
    "PageResult",
    # Models
    "DistruPackage",
    "DistruProduct",
    "DistruOrder",
    "DistruOrderItem",
    "DistruCompany",
    "DistruUser",
]
