"""Core canonical data models - ERP-neutral inventory and ordering types.

These models represent ERP data in a standardized shape that the aggregators
and the HTTP surface work with. Distru-specific field mappings are handled in
/connectors/distru/.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (ERP numbers arrive as strings, numbers or null)
# =============================================================================

def to_number(value: Any) -> float:
    """Parse a number leniently; anything unparseable or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip().replace("$", "").replace(",", ""))
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def to_case_size(value: Any) -> int:
    """Units per case: a positive integer, 1 when unset or non-positive."""
    size = math.floor(to_number(value))
    return size if size > 0 else 1


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


Number = Annotated[float, BeforeValidator(to_number)]
NonNegative = Annotated[float, BeforeValidator(lambda v: max(0.0, to_number(v)))]
CaseSize = Annotated[int, BeforeValidator(to_case_size)]
OptionalStr = Annotated[Optional[str], BeforeValidator(_to_optional_str)]


class CanonicalBase(BaseModel):
    """Base for canonical models."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Inventory
# =============================================================================

class Package(CanonicalBase):
    """A physical lot of a product held at a location."""
    id: str
    product_id: str = ""
    quantity_available: NonNegative = 0.0
    unit_type: OptionalStr = None
    compliance_label: OptionalStr = None
    thc_percentage_total: NonNegative = 0.0
    status: str = "active"
    location_id: OptionalStr = None

    @property
    def is_active(self) -> bool:
        return self.status.lower() == "active"


class Product(CanonicalBase):
    """A sellable catalog entry."""
    id: str
    name: OptionalStr = None
    brand: OptionalStr = None
    category: OptionalStr = None
    unit_price: NonNegative = 0.0
    units_per_case: CaseSize = 1
    image_url: OptionalStr = None
    is_active: bool = True
    unit_type: OptionalStr = None


class OrderLine(CanonicalBase):
    """A line of an ERP order, as read back from the ERP."""
    product_id: OptionalStr = None
    product_name: OptionalStr = None
    quantity: Number = 0.0
    unit_price: Number = 0.0
    location_id: OptionalStr = None


class SalesOrder(CanonicalBase):
    """An ERP sales order with its lines."""
    id: str
    order_number: OptionalStr = None
    status: OptionalStr = None
    lines: List[OrderLine] = Field(default_factory=list)


class OrderCommitment(CanonicalBase):
    """Quantity of a product tied up in a PROCESSING order line."""
    order_id: str
    order_number: OptionalStr = None
    product_id: str
    product_name: OptionalStr = None
    quantity_committed: Number = 0.0
    location_id: OptionalStr = None
    unit_price: Number = 0.0


class MenuItem(CanonicalBase):
    """One purchasable product with positive net availability."""
    product_id: str
    name: str
    brand: Optional[str] = None
    category: Optional[str] = None
    units: float = Field(..., ge=0)
    case_size: int = Field(..., ge=1)
    cases_available: int = Field(..., ge=0)
    price_per_unit: float
    price_per_case: float
    image_url: Optional[str] = None
    unit_type: Optional[str] = None
    avg_thc_percentage: Optional[float] = None


# =============================================================================
# Order Pulling
# =============================================================================

class ProductPull(CanonicalBase):
    """Quantities of one product to pick for processing orders."""
    name: str
    total_cases_to_pull: float = Field(alias="totalCasesToPull")
    total_units_to_pull: float = Field(alias="totalUnitsToPull")
    total_dollars_value: float = Field(alias="totalDollarsValue")


class BrandPullRollup(CanonicalBase):
    """Per-brand pick list for fulfillment."""
    brand: str
    products: List[ProductPull] = Field(default_factory=list)
    brand_total_cases: float = Field(default=0.0, alias="brandTotalCases")
    brand_total_units: float = Field(default=0.0, alias="brandTotalUnits")
    brand_total_dollars: float = Field(default=0.0, alias="brandTotalDollars")


# =============================================================================
# Customers and Staff
# =============================================================================

class Address(CanonicalBase):
    street1: str = ""
    street2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""


class CustomerLocation(CanonicalBase):
    id: str
    name: Optional[str] = None
    address: Optional[Any] = None
    license_id: Optional[str] = None


class CustomerLicense(CanonicalBase):
    id: str
    license_number: Optional[str] = None


class Customer(CanonicalBase):
    """A buying company (dispensary, retailer) as shown in the customer picker."""
    id: Optional[str] = None
    company_name: Optional[str] = None
    display_name: Optional[str] = None
    category: Optional[str] = None
    phone_number: Optional[str] = None
    default_email: Optional[str] = None
    invoice_email: Optional[str] = None
    relationship_type: Optional[str] = None
    primary_address: Optional[Address] = None
    locations: List[CustomerLocation] = Field(default_factory=list)
    licenses: List[CustomerLicense] = Field(default_factory=list)
    updated_datetime: Optional[str] = None


class StaffUser(CanonicalBase):
    """An ERP user who can own an order or act as its sales rep."""
    id: str
    email: str = ""
    full_name: str = ""
    role_name: str = "User"
    role_id: Optional[str] = None
    banned: bool = False


# =============================================================================
# Ordering
# =============================================================================

class CartLineInput(CanonicalBase):
    """A cart line as submitted by the storefront."""
    product_id: str
    name: Optional[str] = None
    brand: Optional[str] = None
    case_size: CaseSize = 1
    image_url: Optional[str] = None
    mode: Literal["unit", "case"] = "case"
    qty_units: NonNegative = Field(default=0.0, alias="qtyUnits")
    qty_cases: NonNegative = Field(default=0.0, alias="qtyCases")
    price_per_unit: NonNegative = 0.0
    price_per_case: NonNegative = 0.0

    @property
    def total_units(self) -> float:
        return self.qty_units + self.qty_cases * self.case_size

    @property
    def line_total(self) -> float:
        return self.qty_units * self.price_per_unit + self.qty_cases * self.price_per_case


class CustomerInfo(CanonicalBase):
    notes: Optional[str] = None


class OrderSubmission(CanonicalBase):
    """Cart plus selected customer and optional staff assignments."""
    cart: List[CartLineInput] = Field(default_factory=list)
    customer_info: Optional[CustomerInfo] = Field(default=None, alias="customerInfo")
    selected_customer: Optional[Customer] = Field(default=None, alias="selectedCustomer")
    selected_owner: Optional[StaffUser] = Field(default=None, alias="selectedOwner")
    selected_sales_rep: Optional[StaffUser] = Field(default=None, alias="selectedSalesRep")
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")


class OrderConfirmation(CanonicalBase):
    """Result of a successful order submission."""
    success: bool = True
    order: Optional[Dict[str, Any]] = None
    customer: Optional[Customer] = None
    message: str = ""
    replayed: bool = False
