"""
Order Submission Tests

Validates cart -> ERP order translation and submission:
1. Payload shape (quantities, prices, locations, dates, notes)
2. Validation before any outbound call
3. Single POST; ERP rejection passes through
4. Duplicate-submission window
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from connectors.distru import DistruApiError, DistruValidationError
from core.errors import OrderValidationError
from core.models import OrderSubmission
from core.ordering import (
    OrderSubmissionService,
    SubmissionGuard,
    build_order_payload,
    cart_subtotal,
    format_quantity,
)


LOC = "L1"
NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def submission(**overrides):
    body = {
        "cart": [
            {
                "product_id": "P1",
                "name": "Gelato 33",
                "case_size": 12,
                "mode": "case",
                "qtyUnits": 6,
                "qtyCases": 2,
                "price_per_unit": 8.5,
                "price_per_case": 102,
            },
            {
                "product_id": "P2",
                "name": "OG Kush",
                "case_size": 10,
                "mode": "unit",
                "qtyUnits": 3,
                "qtyCases": 0,
                "price_per_unit": 5,
                "price_per_case": 50,
            },
        ],
        "customerInfo": {"notes": "Deliver before noon"},
        "selectedCustomer": {
            "id": "C1",
            "company_name": "Green Shop",
            "display_name": "Green Shop LLC",
            "relationship_type": "Customer",
            "locations": [{"id": "CL1", "name": "Storefront"}],
        },
        "selectedOwner": {"id": "U1", "full_name": "Ada Owner", "email": "ada@example.com"},
        "selectedSalesRep": {"id": "U2", "full_name": "Sam Rep", "email": "sam@example.com"},
    }
    body.update(overrides)
    return OrderSubmission.model_validate(body)


class TestOrderPayload:
    """Cart translation into Distru's order schema."""

    def test_items(self):
        payload = build_order_payload(submission(), LOC, "Storefront", now=NOW)

        assert payload["items"] == [
            {"product_id": "P1", "quantity": "30", "price_base": "8.5", "location_id": LOC},
            {"product_id": "P2", "quantity": "3", "price_base": "5", "location_id": LOC},
        ]
        assert payload["charges"] == []

    def test_header_fields(self):
        payload = build_order_payload(submission(), LOC, "Storefront", now=NOW)

        assert payload["company_id"] == "C1"
        assert payload["status"] == "PROCESSING"
        assert payload["billing_location_id"] == LOC
        assert payload["shipping_location_id"] == "CL1"
        assert payload["order_datetime"] == "2024-03-01T12:00:00.000Z"
        assert payload["due_datetime"] == "2024-03-08T12:00:00.000Z"
        assert payload["external_notes"] == "Deliver before noon"

    def test_shipping_falls_back_to_own_location(self):
        sub = submission(selectedCustomer={"id": "C1", "company_name": "Green Shop"})
        payload = build_order_payload(sub, LOC, "Storefront", now=NOW)
        assert payload["shipping_location_id"] == LOC

    def test_internal_notes_audit_trail(self):
        payload = build_order_payload(submission(), LOC, "Storefront", now=NOW)

        assert payload["internal_notes"] == (
            "Order created via Storefront for Green Shop (Green Shop LLC). "
            "Customer: Customer. Subtotal: $270.00"
            "\n\nAssignments:\nOwner: Ada Owner (ada@example.com)\nSales Rep: Sam Rep (sam@example.com)"
            "\n\nCustomer Notes: Deliver before noon"
        )

    def test_notes_without_assignments_or_customer_notes(self):
        sub = submission(customerInfo={"notes": None}, selectedOwner=None, selectedSalesRep=None)
        payload = build_order_payload(sub, LOC, "Storefront", now=NOW)

        assert payload["external_notes"] == "Order for Green Shop"
        assert "Assignments" not in payload["internal_notes"]
        assert "Customer Notes" not in payload["internal_notes"]

    def test_subtotal(self):
        # 6 x 8.5 + 2 x 102 + 3 x 5
        assert cart_subtotal(submission().cart) == 270

    def test_format_quantity(self):
        assert format_quantity(30.0) == "30"
        assert format_quantity(8.5) == "8.5"


class TestOrderValidation:
    """Preconditions checked before any outbound call."""

    def test_missing_customer(self):
        with pytest.raises(OrderValidationError) as exc_info:
            build_order_payload(submission(selectedCustomer=None), LOC, "Storefront")
        assert str(exc_info.value) == "Customer selection required"

    def test_customer_without_id(self):
        with pytest.raises(OrderValidationError):
            build_order_payload(submission(selectedCustomer={"company_name": "No Id"}), LOC, "Storefront")

    def test_empty_cart(self):
        with pytest.raises(OrderValidationError) as exc_info:
            build_order_payload(submission(cart=[]), LOC, "Storefront")
        assert str(exc_info.value) == "Cart is empty"


def make_connector(result=None, error=None):
    connector = MagicMock()
    if error is not None:
        connector.create_order = AsyncMock(side_effect=error)
    else:
        connector.create_order = AsyncMock(return_value=result)
    return connector


class TestOrderSubmissionService:
    """Exactly one POST per accepted submission."""

    def test_success(self):
        connector = make_connector({"data": {"id": "O9", "order_number": "SO-0009"}})
        service = OrderSubmissionService(connector, LOC, "Storefront")

        confirmation = asyncio.run(service.submit(submission(), now=NOW))

        assert confirmation.success
        assert confirmation.order == {"id": "O9", "order_number": "SO-0009"}
        assert confirmation.customer.id == "C1"
        assert confirmation.message == "Order SO-0009 created successfully for Green Shop!"
        connector.create_order.assert_awaited_once()
        payload = connector.create_order.await_args.args[0]
        assert payload["company_id"] == "C1"

    def test_validation_happens_before_post(self):
        connector = make_connector({"data": {}})
        service = OrderSubmissionService(connector, LOC, "Storefront")

        with pytest.raises(OrderValidationError):
            asyncio.run(service.submit(submission(selectedCustomer=None)))

        connector.create_order.assert_not_awaited()

    def test_rejection_passes_through(self):
        error = DistruValidationError("API error 422", 422, '{"errors": ["bad product"]}')
        connector = make_connector(error=error)
        service = OrderSubmissionService(connector, LOC, "Storefront")

        with pytest.raises(DistruApiError) as exc_info:
            asyncio.run(service.submit(submission()))

        assert exc_info.value.status_code == 422
        assert exc_info.value.response_body == '{"errors": ["bad product"]}'
        connector.create_order.assert_awaited_once()


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestSubmissionGuard:
    """Repeat submissions inside the window replay the first confirmation."""

    def test_duplicate_cart_is_not_posted_twice(self):
        clock = FakeClock()
        connector = make_connector({"data": {"order_number": "SO-1"}})
        service = OrderSubmissionService(connector, LOC, "Storefront", guard=SubmissionGuard(60, clock=clock))

        async def run():
            first = await service.submit(submission())
            second = await service.submit(submission())
            return first, second

        first, second = asyncio.run(run())

        assert connector.create_order.await_count == 1
        assert not first.replayed
        assert second.replayed
        assert second.message == first.message

    def test_idempotency_key(self):
        clock = FakeClock()
        connector = make_connector({"data": {"order_number": "SO-1"}})
        guard = SubmissionGuard(60, clock=clock)
        service = OrderSubmissionService(connector, LOC, "Storefront", guard=guard)

        async def run():
            await service.submit(submission(idempotencyKey="abc"))
            # Different cart, same key
            await service.submit(submission(idempotencyKey="abc", cart=submission().cart[:1]))
            await service.submit(submission(idempotencyKey="xyz"))

        asyncio.run(run())

        assert connector.create_order.await_count == 2

    def test_window_expiry(self):
        clock = FakeClock()
        connector = make_connector({"data": {"order_number": "SO-1"}})
        service = OrderSubmissionService(
            connector, LOC, "Storefront", guard=SubmissionGuard(60, clock=clock)
        )

        asyncio.run(service.submit(submission(idempotencyKey="k")))
        clock.now += 61
        asyncio.run(service.submit(submission(idempotencyKey="k")))

        assert connector.create_order.await_count == 2

    def test_different_carts_are_distinct(self):
        guard = SubmissionGuard(60, clock=FakeClock())
        base = submission()
        other = submission(cart=base.cart[:1])
        assert guard.key_for(base) != guard.key_for(other)
        assert guard.key_for(base) == guard.key_for(submission())

    def test_rejected_order_is_not_remembered(self):
        clock = FakeClock()
        connector = make_connector(error=DistruApiError("API error 500", 500, "boom"))
        service = OrderSubmissionService(connector, LOC, "Storefront", guard=SubmissionGuard(60, clock=clock))

        for _ in range(2):
            with pytest.raises(DistruApiError):
                asyncio.run(service.submit(submission()))

        assert connector.create_order.await_count == 2

    def test_rejected_orders_release_their_keys(self):
        connector = make_connector(error=DistruValidationError("API error 422", 422, "bad"))
        guard = SubmissionGuard(60, clock=FakeClock())
        service = OrderSubmissionService(connector, LOC, "Storefront", guard=guard)

        async def run():
            for i in range(50):
                with pytest.raises(DistruApiError):
                    await service.submit(submission(idempotencyKey=f"k{i}"))

        asyncio.run(run())

        assert connector.create_order.await_count == 50
        assert guard.active_keys == 0

    def test_concurrent_duplicates_post_once(self):
        connector = make_connector({"data": {"order_number": "SO-1"}})
        guard = SubmissionGuard(60, clock=FakeClock())
        service = OrderSubmissionService(connector, LOC, "Storefront", guard=guard)

        async def run():
            return await asyncio.gather(*(service.submit(submission()) for _ in range(3)))

        results = asyncio.run(run())

        assert connector.create_order.await_count == 1
        assert [r.replayed for r in results].count(True) == 2
        assert guard.active_keys == 0

    def test_disabled_window(self):
        guard = SubmissionGuard(0)
        assert not guard.enabled
        assert guard.key_for(submission()) is None
