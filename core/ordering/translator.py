"""Cart -> Distru order payload translation.

Builds the single order-creation request for a storefront cart:
- each cart line becomes one order line of total base units
  (units + cases x case size) at the line's unit price
- billing goes to our own location, shipping to the customer's first
  registered location (or ours when the customer has none)
- due date is 7 days out
- notes carry the customer's notes plus an audit trail of staff assignments
  and the computed subtotal
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from core.commitments import PROCESSING
from core.errors import OrderValidationError
from core.models import CartLineInput, Customer, OrderSubmission, StaffUser


DUE_IN_DAYS = 7


def format_quantity(value: float) -> str:
    """Render a number the way the ERP expects it in string fields ("30", "8.5")."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_submission(submission: OrderSubmission) -> Customer:
    """Check preconditions; returns the selected customer.

    Raises:
        OrderValidationError: no customer selected, or the cart is empty
    """
    customer = submission.selected_customer
    if customer is None or not customer.id:
        raise OrderValidationError(
            "Customer selection required",
            "Please select a customer before submitting the order",
        )
    if not submission.cart:
        raise OrderValidationError(
            "Cart is empty",
            "Please add items before submitting the order",
        )
    return customer


def cart_subtotal(cart: List[CartLineInput]) -> float:
    return sum(line.line_total for line in cart)


def _assignment_lines(owner: Optional[StaffUser], sales_rep: Optional[StaffUser]) -> List[str]:
    lines = []
    if owner:
        lines.append(f"Owner: {owner.full_name} ({owner.email})")
    if sales_rep:
        lines.append(f"Sales Rep: {sales_rep.full_name} ({sales_rep.email})")
    return lines


def build_internal_notes(
    submission: OrderSubmission,
    customer: Customer,
    subtotal: float,
    app_name: str,
) -> str:
    """Audit trail written into the order's internal notes."""
    company = customer.company_name or ""
    notes = (
        f"Order created via {app_name} for {company} "
        f"({customer.display_name or company}). "
        f"Customer: {customer.relationship_type or 'N/A'}. "
        f"Subtotal: ${subtotal:.2f}"
    )

    assignments = _assignment_lines(submission.selected_owner, submission.selected_sales_rep)
    if assignments:
        notes += "\n\nAssignments:\n" + "\n".join(assignments)

    customer_notes = submission.customer_info.notes if submission.customer_info else None
    if customer_notes:
        notes += f"\n\nCustomer Notes: {customer_notes}"

    return notes


def build_order_payload(
    submission: OrderSubmission,
    location_id: str,
    app_name: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Translate a submission into Distru's order-creation payload.

    Raises:
        OrderValidationError: see validate_submission
    """
    customer = validate_submission(submission)
    now = now or datetime.now(timezone.utc)

    shipping_location_id = customer.locations[0].id if customer.locations else None
    customer_notes = submission.customer_info.notes if submission.customer_info else None
    subtotal = cart_subtotal(submission.cart)

    return {
        "company_id": customer.id,
        "status": PROCESSING,
        "order_datetime": format_timestamp(now),
        "due_datetime": format_timestamp(now + timedelta(days=DUE_IN_DAYS)),
        "billing_location_id": location_id,
        "shipping_location_id": shipping_location_id or location_id,
        "external_notes": customer_notes or f"Order for {customer.company_name}",
        "internal_notes": build_internal_notes(submission, customer, subtotal, app_name),
        "items": [
            {
                "product_id": line.product_id,
                "quantity": format_quantity(line.total_units),
                "price_base": format_quantity(line.price_per_unit),
                "location_id": location_id,
            }
            for line in submission.cart
        ],
        "charges": [],
    }
