"""Commitment extraction.

Turns in-process ERP orders into per-line commitments for one location.
Shared by the net-availability and order-pulling aggregators.
"""

from typing import Iterable, List

from core.models import OrderCommitment, SalesOrder


PROCESSING = "PROCESSING"


def extract_commitments(orders: Iterable[SalesOrder], location_id: str) -> List[OrderCommitment]:
    """Lines of PROCESSING orders whose location is ``location_id``.

    Lines at other locations are ignored, as are orders in any other status
    (the upstream filter is re-checked here).
    """
    commitments = []
    for order in orders:
        if order.status != PROCESSING:
            continue
        for line in order.lines:
            if line.location_id != location_id or not line.product_id:
                continue
            commitments.append(OrderCommitment(
                order_id=order.id,
                order_number=order.order_number,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity_committed=line.quantity,
                location_id=line.location_id,
                unit_price=line.unit_price,
            ))
    return commitments
