"""
Unit Tests - External API Client
"""
import pytest
import requests

from admin_service.clients import errors
from admin_service.clients.external_api import ExternalApiClient, is_retryable_status
from tests.fakes import FakeResponse, FakeSession


def make_client(responses, **kwargs):
    session = FakeSession(responses)
    delays = []
    client = ExternalApiClient(
        "http://orders.internal/",
        api_key="secret",
        session=session,
        sleep=delays.append,
        **kwargs,
    )
    return client, session, delays


class TestRetries:
    """Tests for the retry policy"""

    def test_succeeds_after_two_server_errors(self):
        """503, 503, 200 returns the 200 body on the third attempt"""
        client, session, delays = make_client([
            FakeResponse(503, {"message": "busy"}, reason="Service Unavailable"),
            FakeResponse(503, {"message": "busy"}, reason="Service Unavailable"),
            FakeResponse(200, {"orders": [{"id": "o1"}]}),
        ])

        assert client.get("/orders") == {"orders": [{"id": "o1"}]}
        assert len(session.calls) == 3
        assert len(delays) == 2

    def test_not_found_fails_without_retry(self):
        client, session, delays = make_client([
            FakeResponse(404, {"message": "Order not found"}, reason="Not Found"),
        ])

        with pytest.raises(errors.NotFoundError) as exc_info:
            client.get("/orders/missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Order not found"
        assert len(session.calls) == 1
        assert delays == []

    def test_retries_exhausted_raises_last_error(self):
        """Default budget is 3 retries, i.e. 4 attempts"""
        client, session, _ = make_client([FakeResponse(500, reason="Internal Server Error")] * 4)

        with pytest.raises(errors.ServerError):
            client.get("/orders")

        assert len(session.calls) == 4

    def test_per_call_retry_budget(self):
        client, session, _ = make_client([FakeResponse(502, reason="Bad Gateway")] * 2)

        with pytest.raises(errors.GenericApiError) as exc_info:
            client.get("/orders", retries=1)

        assert exc_info.value.status_code == 502
        assert len(session.calls) == 2

    def test_network_errors_are_retried(self):
        client, session, _ = make_client([
            requests.ConnectionError("connection refused"),
            requests.Timeout("read timed out"),
            FakeResponse(200, {"ok": True}),
        ])

        assert client.get("/health") == {"ok": True}
        assert len(session.calls) == 3

    def test_network_error_after_budget(self):
        client, _, _ = make_client([requests.ConnectionError("down")] * 2, max_retries=1)

        with pytest.raises(errors.NetworkError) as exc_info:
            client.get("/orders")

        assert exc_info.value.status_code is None

    def test_rate_limited_is_retried(self):
        client, session, _ = make_client([
            FakeResponse(429, {"message": "slow down"}, reason="Too Many Requests"),
            FakeResponse(200, []),
        ])

        assert client.get("/orders") == []
        assert len(session.calls) == 2

    def test_backoff_stays_within_ceiling(self):
        client, _, _ = make_client([], backoff_base=1.0, backoff_max=5.0)

        for attempt in range(6):
            delay = client.backoff_delay(attempt)
            assert 0 <= delay <= min(5.0, 2 ** attempt)

    @pytest.mark.parametrize("status,expected", [
        (500, True), (503, True), (429, True), (408, True),
        (400, False), (401, False), (404, False),
    ])
    def test_retryable_statuses(self, status, expected):
        assert is_retryable_status(status) is expected


class TestErrorMapping:
    """Tests for status to error class mapping"""

    @pytest.mark.parametrize("status,error_cls", [
        (400, errors.BadRequestError),
        (401, errors.UnauthorizedError),
        (403, errors.ForbiddenError),
        (404, errors.NotFoundError),
        (409, errors.GenericApiError),
    ])
    def test_client_errors(self, status, error_cls):
        client, _, _ = make_client([FakeResponse(status, {"message": "nope"}, reason="Error")])

        with pytest.raises(error_cls) as exc_info:
            client.get("/orders")

        assert exc_info.value.status_code == status
        assert isinstance(exc_info.value, errors.ExternalApiError)

    def test_reason_used_without_json_message(self):
        client, _, _ = make_client([FakeResponse(400, reason="Bad Request")])

        with pytest.raises(errors.BadRequestError) as exc_info:
            client.get("/orders")

        assert str(exc_info.value) == "Bad Request: Bad Request"

    def test_generic_error_label_carries_status(self):
        error = errors.error_for_status(418, "teapot")
        assert str(error) == "API Error (418): teapot"

    def test_invalid_json_is_request_error(self):
        class BrokenJsonResponse(FakeResponse):
            def json(self):
                raise ValueError("bad json")

        client, _, _ = make_client([BrokenJsonResponse(200, {"ok": True})])

        with pytest.raises(errors.RequestError):
            client.get("/orders")


class TestRequests:
    """Tests for request construction"""

    def test_headers_and_url(self):
        client, session, _ = make_client([FakeResponse(200, {})])

        client.get("orders", params={"status": "PAID", "merchantId": None, "isActive": True})

        call = session.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "http://orders.internal/orders"
        assert call["params"] == {"status": "PAID", "isActive": "true"}
        assert call["headers"]["Authorization"] == "Bearer secret"
        assert call["timeout"] == 10.0

    def test_post_sends_json_body(self):
        client, session, _ = make_client([FakeResponse(201, {"id": "o1"})])

        assert client.post("/orders", data={"amount": 10}) == {"id": "o1"}
        assert session.calls[0]["json"] == {"amount": 10}

    def test_empty_body_returns_none(self):
        client, _, _ = make_client([FakeResponse(204)])
        assert client.delete("/orders/o1") is None

    def test_update_api_key(self):
        client, session, _ = make_client([FakeResponse(200, {})])

        client.update_api_key("rotated")
        client.get("/orders")

        assert session.calls[0]["headers"]["Authorization"] == "Bearer rotated"

    def test_update_base_url(self):
        client, session, _ = make_client([FakeResponse(200, {})])

        client.update_base_url("http://orders-v2.internal/")
        client.get("/orders")

        assert session.calls[0]["url"] == "http://orders-v2.internal/orders"
