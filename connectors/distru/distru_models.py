"""Distru data models.

These are Distru-specific models that map to the Distru API row schema.
They are separate from the canonical models in /core/models/ and are only
used to normalize upstream rows.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated

from core.models import (
    Address,
    Customer,
    CustomerLicense,
    CustomerLocation,
    OrderLine,
    Package,
    Product,
    SalesOrder,
    StaffUser,
)


def _as_ref(value: Any) -> Any:
    """Distru sometimes sends a bare name where an object is expected."""
    if isinstance(value, str):
        return {"name": value}
    return value


def _as_str(value: Any) -> Any:
    if value is None:
        return None
    return str(value)


Str = Annotated[Optional[str], BeforeValidator(_as_str)]


# =============================================================================
# Distru API Models
# =============================================================================

class DistruBaseModel(BaseModel):
    """Base model for Distru API rows."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DistruRef(DistruBaseModel):
    """Nested ``{id, name}`` reference (brand, category, location, role...)."""
    id: Str = None
    name: Str = None


Ref = Annotated[Optional[DistruRef], BeforeValidator(_as_ref)]


class DistruTestResult(DistruBaseModel):
    thc_percentage_total: Any = None


class DistruPackage(DistruBaseModel):
    """Distru package row.

    Maps to: GET /packages
    """
    id: Str = None
    product_id: Str = None
    quantity_available: Any = None
    quantity: Any = None
    unit_type: Ref = None
    compliance_label: Str = None
    primary_test_result: Optional[DistruTestResult] = None
    status: Str = None
    location: Ref = None
    location_id: Str = None

    @property
    def resolved_location_id(self) -> Optional[str]:
        if self.location and self.location.id is not None:
            return self.location.id
        return self.location_id

    def to_package(self) -> Package:
        quantity = self.quantity_available if self.quantity_available is not None else self.quantity
        test_result = self.primary_test_result or DistruTestResult()
        return Package(
            id=self.id or "",
            product_id=self.product_id or "",
            quantity_available=quantity,
            unit_type=self.unit_type.name if self.unit_type else None,
            compliance_label=self.compliance_label,
            thc_percentage_total=test_result.thc_percentage_total,
            status=(self.status or "").lower(),
            location_id=self.resolved_location_id,
        )


class DistruImage(DistruBaseModel):
    url: Str = None


class DistruProduct(DistruBaseModel):
    """Distru product row.

    Maps to: GET /products
    """
    id: Str = None
    name: Str = None
    brand: Ref = None
    category: Ref = None
    unit_price: Any = None
    units_per_case: Any = None
    images: Optional[List[DistruImage]] = None
    is_active: Any = None
    unit_type: Ref = None

    def to_product(self) -> Product:
        return Product(
            id=self.id or "",
            name=self.name,
            brand=self.brand.name if self.brand else None,
            category=self.category.name if self.category else None,
            unit_price=self.unit_price,
            units_per_case=self.units_per_case,
            image_url=self.images[0].url if self.images else None,
            is_active=bool(self.is_active),
            unit_type=self.unit_type.name if self.unit_type else None,
        )


class DistruOrderItem(DistruBaseModel):
    """One line of a Distru order."""
    id: Str = None
    product: Ref = None
    quantity: Any = None
    price: Any = None
    location: Ref = None


class DistruOrder(DistruBaseModel):
    """Distru order with its line items.

    Maps to: GET /orders
    """
    id: Str = None
    order_number: Str = None
    status: Str = None
    items: Optional[List[DistruOrderItem]] = None

    def to_order(self) -> SalesOrder:
        return SalesOrder(
            id=self.id or "",
            order_number=self.order_number,
            status=self.status,
            lines=[
                OrderLine(
                    product_id=item.product.id if item.product else None,
                    product_name=item.product.name if item.product else None,
                    quantity=item.quantity,
                    unit_price=item.price,
                    location_id=item.location.id if item.location else None,
                )
                for item in (self.items or [])
            ],
        )


class DistruAddress(DistruBaseModel):
    street1: Str = None
    street2: Str = None
    city: Str = None
    state: Str = None
    postal_code: Str = None


class DistruLicense(DistruBaseModel):
    id: Str = None
    license_number: Str = None


class DistruCompanyLocation(DistruBaseModel):
    id: Str = None
    name: Str = None
    address: Any = None
    license_id: Str = None


class DistruCompany(DistruBaseModel):
    """Distru company row.

    Maps to: GET /companies
    """
    id: Str = None
    name: Str = None
    legal_business_name: Str = None
    category: Str = None
    phone_number: Str = None
    default_email: Str = None
    invoice_email: Str = None
    relationship_type: Ref = None
    primary_address: Optional[DistruAddress] = None
    locations: Optional[List[DistruCompanyLocation]] = None
    licenses: Optional[List[DistruLicense]] = None
    updated_datetime: Str = None

    @property
    def is_customer(self) -> bool:
        """Customers are client/customer relationships or dispensary/retail categories."""
        relationship = ((self.relationship_type.name if self.relationship_type else None) or "").lower()
        return (
            "customer" in relationship
            or "client" in relationship
            or self.category in ("Dispensary", "Retailer")
        )

    def to_customer(self) -> Customer:
        address = None
        if self.primary_address:
            address = Address(
                street1=self.primary_address.street1 or "",
                street2=self.primary_address.street2,
                city=self.primary_address.city or "",
                state=self.primary_address.state or "",
                postal_code=self.primary_address.postal_code or "",
            )

        display_name = None
        if self.legal_business_name != self.name:
            display_name = self.legal_business_name

        return Customer(
            id=self.id,
            company_name=self.name or self.legal_business_name,
            display_name=display_name,
            category=self.category,
            phone_number=self.phone_number,
            default_email=self.default_email,
            invoice_email=self.invoice_email,
            relationship_type=self.relationship_type.name if self.relationship_type else None,
            primary_address=address,
            locations=[
                CustomerLocation(id=loc.id or "", name=loc.name, address=loc.address, license_id=loc.license_id)
                for loc in (self.locations or [])
            ],
            licenses=[
                CustomerLicense(id=lic.id or "", license_number=lic.license_number)
                for lic in (self.licenses or [])
            ],
            updated_datetime=self.updated_datetime,
        )


class DistruUser(DistruBaseModel):
    """Distru user row.

    Maps to: GET /users
    """
    id: Str = None
    email: Str = None
    full_name: Str = None
    role: Ref = None
    banned: Optional[bool] = Field(default=False)

    @property
    def is_assignable(self) -> bool:
        return not self.banned and bool(self.email) and bool(self.full_name)

    def to_staff_user(self) -> StaffUser:
        return StaffUser(
            id=self.id or "",
            email=self.email or "",
            full_name=self.full_name or "",
            role_name=(self.role.name if self.role else None) or "User",
            role_id=self.role.id if self.role else None,
            banned=bool(self.banned),
        )
