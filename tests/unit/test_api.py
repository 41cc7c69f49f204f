"""
Unit Tests - API Layer

Routes are exercised through TestClient with stub services in the container,
so neither the database nor the upstream services are touched.
"""
from collections import deque
from datetime import datetime

from aiokafka.errors import KafkaConnectionError
import pytest
from fastapi.testclient import TestClient

from admin_service.config import Settings
from admin_service.config.settings import KafkaSettings, SecuritySettings
from admin_service.errors import AuthError, ConflictError, NotFoundError, UpstreamError
from admin_service.serving.api import create_app
from admin_service.serving.api import main as api_main
from admin_service.serving.api.dependencies import AppContainer
from admin_service.serving.api.middleware import RateLimitMiddleware
from admin_service.serving.cache import CacheManager
from admin_service.services.auth import AuthUser
from tests.fakes import FakeRedis

USER = AuthUser(
    id="0b7c1f9e-3d1a-4a55-9d0e-2f7a9c6b1e11",
    email="admin@example.com",
    first_name="Ada",
    last_name="Admin",
    is_email_verified=True,
)
TOKENS = {"accessToken": "good-token", "refreshToken": "refresh-token"}
AUTH_HEADER = {"Authorization": "Bearer good-token"}


class StubAuth:

    def verify_access_token(self, token):
        if token != "good-token":
            raise AuthError("Invalid token", "INVALID_TOKEN")
        return {"userId": USER.id, "type": "access"}

    async def get_user_by_id(self, user_id):
        return USER if user_id == USER.id else None

    async def login(self, email, password):
        if password != "right-password":
            raise AuthError("Invalid email or password", "INVALID_CREDENTIALS")
        return USER, TOKENS

    async def register(self, email, password, first_name=None, last_name=None):
        raise ConflictError("User already exists", "USER_EXISTS")

    async def forgot_password(self, email):
        return None


class StubBucket:

    def as_dict(self):
        return {"year": 2025, "month": 3, "week": 11}


class StubDashboard:

    def __init__(self):
        self.calls = []
        self.active_stores = 5

    async def weekly_order_summary(self):
        return {
            "thisWeek": {"orders": 3, "failedOrders": 1},
            "lastWeek": {"orders": 2, "failedOrders": 0},
            "activeStores": self.active_stores,
        }

    async def record_metric(self, metric_type, created_at, value):
        self.calls.append(("metric", metric_type, created_at, value))
        return StubBucket()

    async def record_failure_reason(self, reason, created_at, value):
        self.calls.append(("reason", reason, created_at, value))
        return StubBucket()

    async def monthly_order_trend(self, year):
        self.calls.append(("trend", year))
        return [{"month": m, "orders": 0, "failedOrders": 0} for m in range(1, 13)]

    async def failure_breakdown(self, year):
        self.calls.append(("breakdown", year))
        return []

    async def weekly_failure_reasons(self):
        return [{"reason": "Payment declined", "count": 2}]


class StubMerchants:

    def list_stores(self, filters=None):
        stores = [{"id": "s1", "isOld": True, "totalSales": "10.00", "totalOrders": 1}]
        return {
            "stores": stores if filters.is_old else [],
            "total": 3,
            "stats": {"totalStores": 1, "oldStores": 1, "newStores": 0},
        }

    def get_store_by_id(self, store_id):
        raise NotFoundError("Store not found", "STORE_NOT_FOUND")

    def get_store_stats(self):
        return {"totalStores": 3}

    def delete_store(self, store_id):
        return {"id": store_id, "deleted": True}


class StubOrders:

    def __init__(self):
        self.calls = []

    def list_orders(self, filters=None):
        raise UpstreamError("Order service unavailable", upstream_status=503)

    def get_orders_by_merchant(self, merchant_id, filters=None):
        self.calls.append((merchant_id, filters))
        orders = [{"id": "o3", "merchantId": merchant_id, "customerEmail": None, "isSuccessful": True}]
        return {"orders": orders, "total": 1, "stats": {"totalOrders": 1, "successfulOrders": 1, "failedOrders": 0}}

    def cancel_order(self, order_id):
        return {"id": order_id, "cancelled": True}


@pytest.fixture
def dashboard():
    return StubDashboard()


@pytest.fixture
def orders():
    return StubOrders()


@pytest.fixture
def redis():
    return FakeRedis()


def build_app(dashboard, orders, settings=None, stats_cache=None):
    settings = settings or Settings()
    container = AppContainer(
        settings=settings,
        session_factory=None,
        auth=StubAuth(),
        dashboard=dashboard,
        merchants=StubMerchants(),
        orders=orders,
        stats_cache=stats_cache,
    )
    return create_app(settings, container=container)


@pytest.fixture
def client(dashboard, orders, redis):
    return TestClient(build_app(dashboard, orders, stats_cache=CacheManager(redis, "stats")))


class TestAuthentication:

    def test_token_required(self, client):
        response = client.get("/api/dashboard/stats")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "TOKEN_REQUIRED"

    def test_invalid_token(self, client):
        response = client.get("/api/dashboard/stats", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"

    def test_login(self, client):
        response = client.post(
            "/api/auth/login",
            json={"email": "Admin@Example.com", "password": "right-password"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["accessToken"] == "good-token"
        assert data["user"]["email"] == "admin@example.com"

    def test_login_bad_password(self, client):
        response = client.post(
            "/api/auth/login",
            json={"email": "admin@example.com", "password": "wrong"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_CREDENTIALS"

    def test_register_invalid_email(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "not-an-email", "password": "long-enough-pass"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_register_existing_user(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "admin@example.com", "password": "long-enough-pass"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "USER_EXISTS"

    def test_profile(self, client):
        response = client.get("/api/auth/profile", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert response.json()["data"]["user"]["firstName"] == "Ada"

    def test_forgot_password_does_not_leak_accounts(self, client):
        response = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

        assert response.status_code == 200
        assert response.json()["success"] is True


class TestDashboardRoutes:

    def test_stats(self, client):
        response = client.get("/api/dashboard/stats", headers=AUTH_HEADER)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["thisWeek"]["orders"] == 3
        assert "error" not in body

    def test_stats_keeps_null_fields_in_data(self, client, dashboard):
        dashboard.active_stores = None

        response = client.get("/api/dashboard/stats", headers=AUTH_HEADER)

        body = response.json()
        assert body["data"]["activeStores"] is None
        assert "total" not in body
        assert "error" not in body

    def test_update_stat(self, client, dashboard):
        response = client.put(
            "/api/dashboard/stats",
            headers=AUTH_HEADER,
            json={"metricType": "orders", "createdAt": "2025-03-10T10:00:00Z", "value": 2},
        )

        assert response.status_code == 200
        assert response.json()["data"]["week"] == 11
        kind, metric, created_at, value = dashboard.calls[0]
        assert (kind, metric, value) == ("metric", "orders", 2)
        assert isinstance(created_at, datetime)

    def test_update_stat_rejects_negative_value(self, client, dashboard):
        response = client.put(
            "/api/dashboard/stats",
            headers=AUTH_HEADER,
            json={"metricType": "orders", "createdAt": "2025-03-10T10:00:00Z", "value": -1},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "value"
        assert dashboard.calls == []

    def test_update_failure_reason(self, client, dashboard):
        response = client.put(
            "/api/dashboard/failed-order-reasons",
            headers=AUTH_HEADER,
            json={"reason": "Out of stock", "createdAt": "2025-03-10T10:00:00Z"},
        )

        assert response.status_code == 200
        assert dashboard.calls[0][:2] == ("reason", "Out of stock")
        assert dashboard.calls[0][3] == 1

    def test_monthly_trends_for_year(self, client, dashboard):
        response = client.get("/api/dashboard/month-orders-trends?year=2025", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 12
        assert dashboard.calls == [("trend", 2025)]

    def test_failure_breakdown_defaults_to_current_year(self, client, dashboard):
        response = client.get("/api/dashboard/failed-order-reasons", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert dashboard.calls[0][0] == "breakdown"
        assert dashboard.calls[0][1] >= 2025

    def test_weekly_failure_reasons(self, client):
        response = client.get("/api/dashboard/failed-order-reasons/this-week", headers=AUTH_HEADER)

        assert response.json()["data"] == [{"reason": "Payment declined", "count": 2}]


class TestAggregationRoutes:

    def test_list_old_merchants(self, client):
        response = client.get("/api/merchants?isOld=true", headers=AUTH_HEADER)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["stats"]["oldStores"] == 1
        assert body["data"][0]["id"] == "s1"

    def test_merchant_not_found(self, client):
        response = client.get("/api/merchants/missing", headers=AUTH_HEADER)

        assert response.status_code == 404
        assert response.json()["error"] == "STORE_NOT_FOUND"

    def test_merchant_stats(self, client):
        response = client.get("/api/merchants/stats", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert response.json()["data"] == {"totalStores": 3}

    def test_upstream_failure(self, client):
        response = client.get("/api/orders", headers=AUTH_HEADER)

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "UPSTREAM_ERROR"
        assert body["upstreamStatus"] == 503

    def test_orders_by_merchant(self, client, orders):
        response = client.get("/api/orders/merchant/m2?status=PAID&limit=5", headers=AUTH_HEADER)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["data"][0]["merchantId"] == "m2"
        assert body["data"][0]["customerEmail"] is None
        merchant_id, filters = orders.calls[0]
        assert merchant_id == "m2"
        assert filters.status == "PAID"
        assert filters.limit == 5

    def test_delete_merchant_drops_cached_stats(self, client, redis):
        redis.store["stats:merchants"] = '{"totalStores": 9}'

        response = client.delete("/api/merchants/s1", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert "stats:merchants" not in redis.store
        assert client.get("/api/merchants/stats", headers=AUTH_HEADER).json()["data"] == {"totalStores": 3}

    def test_cancel_order_drops_cached_stats(self, client, redis):
        redis.store["stats:orders"] = '{"totalOrders": 9}'

        response = client.delete("/api/orders/o1", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert "stats:orders" not in redis.store

    def test_mutation_succeeds_when_cache_unavailable(self, dashboard, orders):
        app = build_app(dashboard, orders, stats_cache=CacheManager(FakeRedis(broken=True), "stats"))

        response = TestClient(app).delete("/api/merchants/s1", headers=AUTH_HEADER)

        assert response.status_code == 200


class TestOperationalEndpoints:

    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_request_id_header(self, client):
        response = client.get("/health/live")
        assert "X-Request-ID" in response.headers

    def test_metrics(self, client):
        response = client.get("/metrics/")

        assert response.status_code == 200
        assert "admin_upstream_requests_total" in response.text

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["error"] == "HTTP_404"


class TestRateLimiting:

    def test_limit_per_client(self, dashboard):
        settings = Settings(security=SecuritySettings(RATE_LIMIT_REQUESTS=2))
        container = AppContainer(
            settings=settings,
            session_factory=None,
            auth=StubAuth(),
            dashboard=dashboard,
            merchants=StubMerchants(),
            orders=StubOrders(),
        )
        client = TestClient(create_app(settings, container=container))

        statuses = [client.get("/api/dashboard/stats", headers=AUTH_HEADER).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        assert client.get("/health/live").status_code == 200

    def test_idle_clients_are_forgotten(self):
        limiter = RateLimitMiddleware(app=None, max_requests=2, window_seconds=60)
        limiter._hits["10.0.0.1"] = deque([0.0])
        limiter._hits["10.0.0.2"] = deque([0.0, 100.0])

        limiter._sweep(120.0)

        assert "10.0.0.1" not in limiter._hits
        assert list(limiter._hits["10.0.0.2"]) == [100.0]
        assert limiter._last_sweep == 120.0


class TestLifespan:

    def test_failed_consumer_does_not_break_the_app(self, monkeypatch, dashboard, orders):
        async def unreachable_broker(dashboard, settings):
            raise KafkaConnectionError("Unable to bootstrap from 127.0.0.1:1")

        monkeypatch.setattr(api_main, "start_consumers", unreachable_broker)
        settings = Settings(kafka=KafkaSettings(consumer_enabled=True))
        app = build_app(dashboard, orders, settings=settings)

        with TestClient(app) as client:
            assert client.get("/health/live").status_code == 200
            health = client.get("/health").json()
            assert health["checks"]["consumer"] == {"status": "stopped"}
            assert health["status"] != "healthy"

        assert app.state.consumer_task is None
