"""Order submission: cart translation and the single outbound create call."""

from core.ordering.translator import (
    build_order_payload,
    cart_subtotal,
    format_quantity,
    validate_submission,
)
from core.ordering.service import OrderSubmissionService, SubmissionGuard

__all__ = [
    "build_order_payload",
    "cart_subtotal",
    "format_quantity",
    "validate_submission",
    "OrderSubmissionService",
    "SubmissionGuard",
]
