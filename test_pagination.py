"""
ERP Fetcher Tests

Validates Distru pagination and row normalization:
1. Termination on short page, empty page, page budget, explicit signals
2. Partial results: first-page failure vs. later-page truncation
3. Row envelope keys (data, items, results)
4. Distru row -> canonical model conversion
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from connectors.distru import (
    DistruApiClient,
    DistruApiConfig,
    DistruApiError,
    DistruConnector,
    PageResult,
)
from connectors.distru.distru_client import extract_rows, has_more_pages
from connectors.distru.distru_models import DistruCompany, DistruPackage, DistruProduct, DistruUser
from core.config import DistruSettings


def rows(n, start=0):
    return [{"id": str(start + i)} for i in range(n)]


def make_client(pages, page_size=25):
    """Client whose get_page serves ``pages`` in order (exceptions are raised)."""
    client = DistruApiClient(DistruApiConfig(base_url="https://erp.test", api_key="k", page_size=page_size))
    client.get_page = AsyncMock(side_effect=pages)
    return client


class TestPaginationTermination:
    """When pagination stops."""

    def test_short_page_ends_pagination(self):
        """[25, 25, 10] stops after the third page."""
        client = make_client([{"data": rows(25)}, {"data": rows(25, 25)}, {"data": rows(10, 50)}, {"data": rows(25)}])

        result = asyncio.run(client.paginate("products", "products", max_pages=10))

        assert client.get_page.await_count == 3
        assert len(result.rows) == 60
        assert result.pages_fetched == 3
        assert result.complete

    def test_budget_exhausted(self):
        """Three full pages with a budget of 3 stop at the budget."""
        client = make_client([{"data": rows(25)} for _ in range(5)])

        result = asyncio.run(client.paginate("orders", "orders", max_pages=3))

        assert client.get_page.await_count == 3
        assert len(result.rows) == 75
        assert not result.truncated

    def test_empty_page_ends_pagination(self):
        client = make_client([{"data": rows(25)}, {"data": []}])

        result = asyncio.run(client.paginate("users", "users", max_pages=10))

        assert client.get_page.await_count == 2
        assert len(result.rows) == 25

    def test_pages_are_one_based_and_sequential(self):
        client = make_client([{"data": rows(25)}, {"data": rows(3)}])
        params = [("statuses[]", "PROCESSING")]

        asyncio.run(client.paginate("orders", "orders", params=params, max_pages=5))

        calls = client.get_page.await_args_list
        assert [c.args[1] for c in calls] == [1, 2]
        assert calls[0].args[2] == params

    def test_configurable_page_size(self):
        client = make_client([{"data": rows(50)}, {"data": rows(50)}, {"data": rows(10)}], page_size=50)

        result = asyncio.run(client.paginate("products", "products", max_pages=10))

        assert len(result.rows) == 110

    def test_explicit_next_link_wins_over_short_page(self):
        client = make_client([
            {"data": rows(10), "links": {"next": "/products?page[number]=2"}},
            {"data": rows(10), "links": {"next": None}},
        ])

        result = asyncio.run(client.paginate("products", "products", max_pages=10))

        assert client.get_page.await_count == 2
        assert len(result.rows) == 20

    def test_total_pages_meta(self):
        assert has_more_pages({"meta": {"total_pages": 2}}, page=1, row_count=25, page_size=25)
        assert not has_more_pages({"meta": {"total_pages": 2}}, page=2, row_count=25, page_size=25)
        assert not has_more_pages({"data": []}, page=1, row_count=0, page_size=25)


class TestPartialResults:
    """Failed pages stop pagination without raising."""

    def test_first_page_failure(self):
        client = make_client([DistruApiError("API error 500: boom", 500, "boom")])

        result = asyncio.run(client.paginate("packages", "packages"))

        assert result.failed
        assert not result.truncated
        assert result.rows == []
        assert result.status_code == 500
        assert result.error_body == "boom"

    def test_later_page_failure_keeps_accumulated_rows(self):
        client = make_client([
            {"data": rows(25)},
            {"data": rows(25, 25)},
            DistruApiError("API error 502", 502, "bad gateway"),
        ])

        result = asyncio.run(client.paginate("packages", "packages"))

        assert result.truncated
        assert not result.failed
        assert len(result.rows) == 50
        assert client.get_page.await_count == 3

    def test_no_retry_after_failure(self):
        client = make_client([DistruApiError("timeout"), {"data": rows(5)}])

        asyncio.run(client.paginate("products", "products"))

        assert client.get_page.await_count == 1

    def test_undecodable_body_is_a_failed_page(self):
        session = FakeSession(200, b"\xff\xfe{garbage")
        client = DistruApiClient(DistruApiConfig(base_url="https://erp.test", api_key="k"), session=session)

        result = asyncio.run(client.paginate("orders", "orders"))

        assert result.failed
        assert result.rows == []
        assert result.status_code == 200

    def test_undecodable_error_body_keeps_status(self):
        session = FakeSession(503, b"\xffunavailable")
        client = DistruApiClient(DistruApiConfig(base_url="https://erp.test", api_key="k"), session=session)

        result = asyncio.run(client.paginate("orders", "orders"))

        assert result.failed
        assert result.status_code == 503
        assert result.error_body.endswith("unavailable")


class FakeResponse:
    """aiohttp-style response over raw bytes."""

    def __init__(self, status, body):
        self.status = status
        self._body = body

    async def text(self, encoding=None, errors="strict"):
        return self._body.decode(encoding or "utf-8", errors)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, status, body):
        self.status = status
        self.body = body

    def request(self, method, url, **kwargs):
        return FakeResponse(self.status, self.body)


class TestEnvelope:
    """Row collection lookup."""

    def test_data_key(self):
        assert extract_rows({"data": [1], "items": [2]}) == [1]

    def test_items_key(self):
        assert extract_rows({"items": [2], "results": [3]}) == [2]

    def test_results_key(self):
        assert extract_rows({"results": [3]}) == [3]

    def test_missing_or_malformed(self):
        assert extract_rows({}) == []
        assert extract_rows({"data": {"id": 1}}) == []
        assert extract_rows(None) == []


class TestRequest:
    """Single HTTP request behavior."""

    def test_not_connected(self):
        client = DistruApiClient(DistruApiConfig(base_url="https://erp.test", api_key="k"))
        with pytest.raises(DistruApiError):
            asyncio.run(client.get_page("products", 1))

    def test_bearer_header_and_url(self):
        client = DistruApiClient(DistruApiConfig(base_url="https://erp.test/public/v1/", api_key="secret"))
        assert client._get_headers()["Authorization"] == "Bearer secret"
        assert client._build_url("/orders") == "https://erp.test/public/v1/orders"

    def test_get_page_adds_page_number(self):
        client = DistruApiClient(DistruApiConfig(base_url="https://erp.test", api_key="k"))
        client._request = AsyncMock(return_value={"data": []})

        asyncio.run(client.get_page("packages", 3, [("statuses[]", "active")]))

        client._request.assert_awaited_once_with(
            "GET", "packages", params=[("statuses[]", "active"), ("page[number]", "3")]
        )


class TestDistruModels:
    """Distru rows normalize leniently into canonical types."""

    def test_package_conversion(self):
        row = {
            "id": 11,
            "product_id": "P1",
            "quantity": "12.5",
            "status": "Active",
            "location": {"id": "L1", "name": "Main"},
            "primary_test_result": {"thc_percentage_total": "22.4"},
            "unit_type": {"name": "Each"},
        }

        pkg = DistruPackage.model_validate(row).to_package()

        assert pkg.id == "11"
        assert pkg.quantity_available == 12.5
        assert pkg.is_active
        assert pkg.location_id == "L1"
        assert pkg.thc_percentage_total == pytest.approx(22.4)
        assert pkg.unit_type == "Each"

    def test_package_bad_numbers(self):
        pkg = DistruPackage.model_validate({"id": "1", "quantity_available": "n/a", "location_id": "L1"}).to_package()
        assert pkg.quantity_available == 0
        assert pkg.thc_percentage_total == 0

    def test_product_conversion(self):
        row = {
            "id": "P1",
            "name": "Gelato 33",
            "brand": {"name": "Acme"},
            "category": "Flower",
            "unit_price": "5.00",
            "units_per_case": None,
            "images": [{"url": "https://img/1.png"}],
            "is_active": True,
        }

        product = DistruProduct.model_validate(row).to_product()

        assert product.brand == "Acme"
        assert product.category == "Flower"
        assert product.unit_price == 5.0
        assert product.units_per_case == 1
        assert product.image_url == "https://img/1.png"

    def test_customer_filter(self):
        customer = DistruCompany.model_validate({"id": "C1", "name": "Shop", "relationship_type": {"name": "Customer"}})
        retailer = DistruCompany.model_validate({"id": "C2", "name": "Store", "category": "Retailer"})
        vendor = DistruCompany.model_validate({"id": "C3", "name": "Farm", "relationship_type": {"name": "Vendor"}})

        assert customer.is_customer
        assert retailer.is_customer
        assert not vendor.is_customer

    def test_user_filter(self):
        assert DistruUser.model_validate({"id": "1", "email": "a@x", "full_name": "A"}).is_assignable
        assert not DistruUser.model_validate({"id": "2", "email": "b@x", "full_name": "B", "banned": True}).is_assignable
        assert not DistruUser.model_validate({"id": "3", "full_name": "C"}).is_assignable


class TestDistruConnector:
    """Per-resource endpoints, filters and budgets."""

    def _connector(self, rows_by_call):
        client = MagicMock()
        client.paginate = AsyncMock(side_effect=[
            PageResult(resource="r", rows=r, pages_fetched=1) for r in rows_by_call
        ])
        settings = DistruSettings(base_url="https://erp.test", api_key="k", location_id="L1")
        return DistruConnector(settings, client=client), client

    def test_packages_filtered_and_budgeted(self):
        connector, client = self._connector([[
            {"id": "1", "product_id": "P1", "quantity": 5, "status": "active", "location_id": "L1"},
            {"id": "2", "product_id": "P1", "quantity": 5, "status": "inactive", "location_id": "L1"},
            {"id": "3", "product_id": "P1", "quantity": 5, "status": "active", "location_id": "L2"},
        ]])

        fetch = asyncio.run(connector.fetch_packages("L1"))

        assert [p.id for p in fetch.items] == ["1"]
        call = client.paginate.await_args
        assert call.args[:2] == ("packages", "packages")
        assert ("location_ids[]", "L1") in call.kwargs["params"]
        assert ("statuses[]", "active") in call.kwargs["params"]
        assert call.kwargs["max_pages"] == 10

    def test_orders_budget(self):
        connector, client = self._connector([[], []])

        asyncio.run(connector.fetch_processing_orders())
        asyncio.run(connector.fetch_processing_orders(budget="order_pulling"))

        budgets = [c.kwargs["max_pages"] for c in client.paginate.await_args_list]
        assert budgets == [5, 10]

    def test_commitments_from_orders(self):
        connector, _ = self._connector([[
            {"id": "O1", "order_number": "SO-1", "status": "PROCESSING", "items": [
                {"product": {"id": "P1", "name": "Gelato"}, "quantity": "4", "price": "5", "location": {"id": "L1"}},
                {"product": {"id": "P2"}, "quantity": 9, "location": {"id": "L2"}},
            ]},
        ]])

        fetch = asyncio.run(connector.fetch_commitments("L1"))

        assert fetch.resource == "orders"
        assert len(fetch.items) == 1
        assert fetch.items[0].quantity_committed == 4
        assert fetch.items[0].product_name == "Gelato"

    def test_users_sorted_by_name(self):
        connector, _ = self._connector([[
            {"id": "1", "email": "z@x", "full_name": "zoe"},
            {"id": "2", "email": "a@x", "full_name": "Adam"},
            {"id": "3", "email": "b@x", "full_name": "Banned", "banned": True},
        ]])

        fetch = asyncio.run(connector.fetch_users())

        assert [u.full_name for u in fetch.items] == ["Adam", "zoe"]

    def test_malformed_rows_are_skipped(self):
        connector, _ = self._connector([[{"id": "P1", "images": "not-a-list"}, {"id": "P2"}]])

        fetch = asyncio.run(connector.fetch_products())

        assert [p.id for p in fetch.items] == ["P2"]
