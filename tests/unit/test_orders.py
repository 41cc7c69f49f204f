"""
Unit Tests - Order Aggregation
"""
import pytest

from admin_service.clients import errors as api_errors
from admin_service.errors import NotFoundError, UpstreamError
from admin_service.services.orders import OrderFilters, OrderService
from tests.fakes import FakeApiClient

ORDERS = [
    {"orderId": "o1", "merchantId": "m1", "merchantName": "Acme Books", "merchantEmail": "sales@acme.com",
     "amount": 50, "status": "COMPLETED", "products": [{"sku": "b-1"}]},
    {"id": "o2", "storeId": "m1", "merchantName": "Acme Books", "merchantEmail": "sales@acme.com",
     "grandTotal": 10, "status": "pending", "items": [{"sku": "b-2"}]},
    {"orderId": "o3", "merchantId": "m2", "merchantName": "Shoe Hub", "merchantEmail": "hello@shoehub.io",
     "amount": 80, "status": "delivered"},
    {"orderId": "o4", "merchantId": "m2", "merchantName": "Shoe Hub", "merchantEmail": "hello@shoehub.io",
     "amount": 15, "status": "CANCELLED"},
]


@pytest.fixture
def client():
    return FakeApiClient({
        ("GET", "/orders"): {"orders": ORDERS},
        ("GET", "/merchants/m2/orders"): ORDERS[2:],
        ("GET", "/orders/o1"): ORDERS[0],
        ("GET", "/orders/missing"): api_errors.NotFoundError("Order not found", 404),
        ("POST", "/orders"): {"orderId": "o9", "status": "PENDING", "amount": 12},
        ("PUT", "/orders/o1"): {**ORDERS[0], "status": "SHIPPED"},
        ("PUT", "/orders/missing"): api_errors.NotFoundError("Order not found", 404),
        ("DELETE", "/orders/o1"): None,
    })


@pytest.fixture
def service(client):
    return OrderService(client)


class TestListOrders:
    """Tests for list_orders"""

    def test_normalizes_and_counts(self, service):
        result = service.list_orders()

        assert [o["id"] for o in result["orders"]] == ["o1", "o2", "o3", "o4"]
        assert result["total"] == 4
        assert result["stats"] == {"totalOrders": 4, "successfulOrders": 2, "failedOrders": 2}

    def test_field_aliases(self, service):
        order = service.list_orders()["orders"][1]

        assert order["merchantId"] == "m1"
        assert order["amount"] == 10
        assert order["products"] == [{"sku": "b-2"}]
        assert order["isSuccessful"] is False

    def test_filter_by_store_name(self, service):
        result = service.list_orders(OrderFilters(store_name="acme"))

        assert [o["id"] for o in result["orders"]] == ["o1", "o2"]
        assert result["stats"] == {"totalOrders": 2, "successfulOrders": 1, "failedOrders": 1}

    def test_filter_by_store_email(self, service):
        result = service.list_orders(OrderFilters(store_email="SHOEHUB"))
        assert [o["id"] for o in result["orders"]] == ["o3", "o4"]

    def test_filters_passed_upstream(self, service, client):
        service.list_orders(OrderFilters(status="PAID", start_date="2025-01-01", merchant_id="m1", limit=5))

        _, path, kwargs = client.calls[0]
        assert path == "/orders"
        assert kwargs["params"]["status"] == "PAID"
        assert kwargs["params"]["startDate"] == "2025-01-01"
        assert kwargs["params"]["merchantId"] == "m1"
        assert kwargs["params"]["limit"] == 5

    def test_bare_list_payload(self):
        service = OrderService(FakeApiClient({("GET", "/orders"): ORDERS[:1]}))
        assert service.list_orders()["total"] == 1

    def test_custom_successful_statuses(self, client):
        service = OrderService(client, successful_statuses=["pending"])
        stats = service.list_orders()["stats"]

        assert stats["successfulOrders"] == 1

    def test_upstream_failure(self):
        service = OrderService(FakeApiClient({
            ("GET", "/orders"): api_errors.RateLimitedError("slow down", 429),
        }))

        with pytest.raises(UpstreamError) as exc_info:
            service.list_orders()

        assert exc_info.value.upstream_status == 429


class TestOrderOperations:

    def test_order_stats(self, service):
        assert service.get_order_stats() == {"totalOrders": 4, "successfulOrders": 2, "failedOrders": 2}

    def test_orders_by_merchant(self, service, client):
        result = service.get_orders_by_merchant("m2")

        assert [o["id"] for o in result["orders"]] == ["o3", "o4"]
        assert client.calls[0][2]["params"]["merchantId"] == "m2"

    def test_get_order(self, service):
        order = service.get_order_by_id("o1")
        assert order["id"] == "o1"
        assert order["isSuccessful"] is True

    def test_get_order_not_found(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            service.get_order_by_id("missing")
        assert exc_info.value.error_code == "ORDER_NOT_FOUND"

    def test_create_order(self, service, client):
        order = service.create_order({"amount": 12})

        assert order["id"] == "o9"
        assert client.calls[0] == ("POST", "/orders", {"data": {"amount": 12}})

    def test_update_status(self, service, client):
        order = service.update_order_status("o1", "SHIPPED")

        assert order["status"] == "SHIPPED"
        assert client.calls[0][2] == {"data": {"status": "SHIPPED"}}

    def test_update_status_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.update_order_status("missing", "SHIPPED")

    def test_cancel_order(self, service):
        assert service.cancel_order("o1") == {"id": "o1", "cancelled": True}

    @pytest.mark.parametrize("status,expected", [
        ("COMPLETED", True), ("shipped", True), ("Delivered", True),
        ("PENDING", False), ("CANCELLED", False), (None, False), ("", False),
    ])
    def test_is_successful(self, service, status, expected):
        assert service.is_successful(status) is expected
