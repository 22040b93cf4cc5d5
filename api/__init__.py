"""API Package.

FastAPI server for the Wholesale Storefront.
"""

from api.server import create_app

__all__ = [
    "create_app",
]
