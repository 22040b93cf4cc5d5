"""Service-level exceptions.

ERP transport errors live with the HTTP client in
``connectors.distru.distru_client``; these are the errors the aggregation and
ordering services raise to the API layer.
"""

from typing import List, Optional


class StorefrontError(Exception):
    """Base exception for storefront errors."""
    pass


class ConfigurationError(StorefrontError):
    """Required configuration (credential, base URL, location) is missing."""
    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class UpstreamFetchError(StorefrontError):
    """A required ERP resource could not be fetched at all."""
    def __init__(self, resource: str, status_code: int = 0, details: str = ""):
        super().__init__(f"{resource} fetch failed")
        self.resource = resource
        self.status_code = status_code
        self.details = details


class OrderValidationError(StorefrontError):
    """An order submission was rejected before any outbound call."""
    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.details = details
