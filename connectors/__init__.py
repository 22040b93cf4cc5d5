"""ERP Connectors - upstream ERP integrations.

This package contains the Distru connector. Core aggregation and ordering
code is ERP-neutral; this package handles:
- Bearer-token authentication
- Page-number pagination and partial results
- Normalizing ERP rows into canonical models
- Order creation

Key Design Principle:
- Aggregators and API routes see ONLY canonical types (Package, Product, ...)
- No Distru-specific row shapes leak past the connector
"""

from connectors.distru import (
    DistruConnector,
    ResourceFetch,
    DistruApiClient,
    DistruApiConfig,
    DistruApiError,
    PageResult,
)

__all__ = [
    "DistruConnector",
    "ResourceFetch",
    "DistruApiClient",
    "DistruApiConfig",
    "DistruApiError",
    "PageResult",
]
