"""Core data models - ERP-neutral canonical types.

This package contains the canonical inventory, order-pulling and ordering
models that are intentionally independent of the ERP's wire format.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    to_number,
    to_case_size,

    # Inventory
    Package,
    Product,
    OrderLine,
    SalesOrder,
    OrderCommitment,
    MenuItem,

    # Order pulling
    ProductPull,
    BrandPullRollup,

    # Customers and staff
    Address,
    Customer,
    CustomerLocation,
    CustomerLicense,
    StaffUser,

    # Ordering
    CartLineInput,
    CustomerInfo,
    OrderSubmission,
    OrderConfirmation,
)

__all__ = [
    # Base
    "CanonicalBase",
    "to_number",
    "to_case_size",
    # Inventory
    "Package",
    "Product",
    "OrderLine",
    "SalesOrder",
    "OrderCommitment",
    "MenuItem",
    # Order pulling
    "ProductPull",
    "BrandPullRollup",
    # Customers and staff
    "Address",
    "Customer",
    "CustomerLocation",
    "CustomerLicense",
    "StaffUser",
    # Ordering
    "CartLineInput",
    "CustomerInfo",
    "OrderSubmission",
    "OrderConfirmation",
]
