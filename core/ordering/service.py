"""Order submission.

Posts exactly one order to the ERP per accepted submission. The ERP's error
status and body are passed through verbatim on rejection; nothing is retried.

A short in-memory window guards against the duplicate orders a client retry
would otherwise create: a repeat of the same submission inside the window gets
the earlier confirmation back instead of a second POST.
"""

import asyncio
import hashlib
import json
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

from connectors.distru import DistruApiError, DistruConnector
from core.models import OrderConfirmation, OrderSubmission
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from core.ordering.translator import build_order_payload

logger = get_logger(__name__)


class SubmissionGuard:
    """In-memory dedup window for order submissions.

    Keys are the client's idempotency key when one is sent, otherwise a
    fingerprint of (customer, cart contents, time bucket).
    """

    def __init__(self, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._confirmations: Dict[str, Tuple[float, OrderConfirmation]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self.window_seconds > 0

    def key_for(self, submission: OrderSubmission) -> Optional[str]:
        if not self.enabled:
            return None
        if submission.idempotency_key:
            return f"key:{submission.idempotency_key}"

        customer_id = submission.selected_customer.id if submission.selected_customer else None
        lines = sorted(
            (line.product_id, line.mode, line.qty_units, line.qty_cases, line.price_per_unit, line.price_per_case)
            for line in submission.cart
        )
        bucket = int(self._clock() // self.window_seconds)
        digest = hashlib.sha256(json.dumps([customer_id, lines, bucket]).encode("utf-8")).hexdigest()
        return f"cart:{digest}"

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Serialize submissions sharing a key.

        The lock is dropped once its last holder or waiter leaves, whether or
        not the order was created.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    @property
    def active_keys(self) -> int:
        return len(self._locks)

    def lookup(self, key: str) -> Optional[OrderConfirmation]:
        self._expire()
        entry = self._confirmations.get(key)
        return entry[1] if entry else None

    def remember(self, key: str, confirmation: OrderConfirmation) -> None:
        self._confirmations[key] = (self._clock() + self.window_seconds, confirmation)

    def _expire(self) -> None:
        now = self._clock()
        for key in [k for k, (expires, _) in self._confirmations.items() if expires <= now]:
            del self._confirmations[key]


class OrderSubmissionService:
    """Validates, translates and posts one storefront order."""

    def __init__(
        self,
        connector: DistruConnector,
        location_id: str,
        app_name: str,
        guard: Optional[SubmissionGuard] = None,
    ):
        self.connector = connector
        self.location_id = location_id
        self.app_name = app_name
        self.guard = guard or SubmissionGuard(window_seconds=0)

    async def submit(self, submission: OrderSubmission, now: Optional[datetime] = None) -> OrderConfirmation:
        """Create the order in the ERP.

        Raises:
            OrderValidationError: before any outbound call
            DistruApiError: the ERP rejected the order (status and body attached)
        """
        payload = build_order_payload(submission, self.location_id, self.app_name, now=now)
        customer = submission.selected_customer

        with with_correlation(customer_id=customer.id, location_id=self.location_id):
            key = self.guard.key_for(submission)
            if key is None:
                return await self._post(payload, submission)

            async with self.guard.hold(key):
                previous = self.guard.lookup(key)
                if previous is not None:
                    get_metrics().record_order_deduplicated()
                    logger.warning("Duplicate submission inside dedup window, replaying earlier confirmation")
                    return previous.model_copy(update={"replayed": True})

                confirmation = await self._post(payload, submission)
                self.guard.remember(key, confirmation)
                return confirmation

    async def _post(self, payload: Dict, submission: OrderSubmission) -> OrderConfirmation:
        customer = submission.selected_customer
        logger.info(
            f"Creating order with {len(submission.cart)} items for customer: {customer.company_name}",
            extra_fields={
                "owner": submission.selected_owner.full_name if submission.selected_owner else None,
                "sales_rep": submission.selected_sales_rep.full_name if submission.selected_sales_rep else None,
            },
        )

        try:
            result = await self.connector.create_order(payload)
        except DistruApiError as e:
            get_metrics().record_order_rejected()
            logger.error(f"Order creation failed: {e.status_code} - {e.response_body}")
            raise

        order = result.get("data", result) if isinstance(result, dict) else None
        order_number = order.get("order_number") if isinstance(order, dict) else None

        with with_correlation(order_number=order_number):
            get_metrics().record_order_created()
            logger.info("Order created successfully")

        return OrderConfirmation(
            success=True,
            order=order,
            customer=customer,
            message=f"Order {order_number} created successfully for {customer.company_name}!",
        )
