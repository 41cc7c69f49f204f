"""
External API Client

Uniform HTTP access to the upstream merchant and order services with:
- Bearer authentication and default headers
- Per-request timeout
- Retries with exponential backoff and full jitter
- Mapping of failures onto the ExternalApiError taxonomy
- Structured request/response logging and Prometheus counters
"""

import random
import time
from typing import Any, Callable, Dict, Optional

import requests
import structlog
from prometheus_client import Counter

from admin_service.clients.errors import (
    ExternalApiError,
    NetworkError,
    RequestError,
    error_for_status,
)
from admin_service.config.settings import Settings

logger = structlog.get_logger(__name__)

UPSTREAM_REQUESTS = Counter(
    "admin_upstream_requests_total",
    "Upstream HTTP requests by outcome",
    ["service", "method", "outcome"],
)

RETRYABLE_STATUS_CODES = {408, 429}
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRIES = 3


def is_retryable_status(status_code: int) -> bool:
    """5xx, 429 and 408 are worth another attempt"""
    return status_code >= 500 or status_code in RETRYABLE_STATUS_CODES


class ExternalApiClient:
    """
    HTTP client for one upstream service.

    Example:
        client = ExternalApiClient("http://localhost:3004", api_key="secret")
        stores = client.get("/all-stores", params={"isActive": True})
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        max_retries: int = DEFAULT_RETRIES,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        service_name: str = "upstream",
        user_agent: str = "admin-service/1.0",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.service_name = service_name
        self._session = session or requests.Session()
        self._sleep = sleep
        self._headers: Dict[str, str] = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": user_agent,
        }
        if headers:
            self._headers.update(headers)

    # -------------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------------

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, retries: Optional[int] = None) -> Any:
        return self.request("GET", path, params=params, retries=retries)

    def post(self, path: str, data: Any = None, retries: Optional[int] = None) -> Any:
        return self.request("POST", path, json_body=data, retries=retries)

    def put(self, path: str, data: Any = None, retries: Optional[int] = None) -> Any:
        return self.request("PUT", path, json_body=data, retries=retries)

    def patch(self, path: str, data: Any = None, retries: Optional[int] = None) -> Any:
        return self.request("PATCH", path, json_body=data, retries=retries)

    def delete(self, path: str, retries: Optional[int] = None) -> Any:
        return self.request("DELETE", path, retries=retries)

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    def update_api_key(self, api_key: str) -> None:
        """Rotate the bearer credential without rebuilding the client"""
        self.api_key = api_key
        self._headers["Authorization"] = f"Bearer {api_key}"

    def update_base_url(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    # -------------------------------------------------------------------------
    # Core request loop
    # -------------------------------------------------------------------------

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def backoff_delay(self, attempt: int) -> float:
        """Full-jitter exponential backoff for the given zero-based retry"""
        ceiling = min(self.backoff_max, self.backoff_base * (2 ** attempt))
        return random.uniform(0, ceiling)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        retries: Optional[int] = None,
    ) -> Any:
        """
        Execute a request, retrying transient failures.

        Args:
            method: HTTP verb
            path: Path relative to the base URL
            params: Query parameters
            json_body: JSON request body
            retries: Retries after the first attempt (defaults to max_retries)

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            ExternalApiError: The mapped failure of the last attempt
        """
        budget = self.max_retries if retries is None else retries
        url = self.url_for(path)
        attempt = 0

        while True:
            try:
                return self._send(method, url, params, json_body, attempt)
            except ExternalApiError as exc:
                retryable = self._is_retryable(exc)
                if not retryable or attempt >= budget:
                    UPSTREAM_REQUESTS.labels(
                        service=self.service_name, method=method, outcome="error"
                    ).inc()
                    logger.error(
                        "External API request failed",
                        service=self.service_name,
                        method=method,
                        url=url,
                        status=exc.status_code,
                        attempts=attempt + 1,
                        error=str(exc),
                    )
                    raise

                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Retrying external API request",
                    service=self.service_name,
                    method=method,
                    url=url,
                    status=exc.status_code,
                    retries_left=budget - attempt,
                    delay_seconds=round(delay, 3),
                )
                UPSTREAM_REQUESTS.labels(
                    service=self.service_name, method=method, outcome="retry"
                ).inc()
                self._sleep(delay)
                attempt += 1

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        json_body: Any,
        attempt: int,
    ) -> Any:
        logger.info(
            "External API request",
            service=self.service_name,
            method=method,
            url=url,
            attempt=attempt + 1,
        )
        try:
            response = self._session.request(
                method=method,
                url=url,
                params=self._clean_params(params),
                json=json_body,
                headers=self._headers,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkError("No response from external API") from exc
        except requests.RequestException as exc:
            raise RequestError(str(exc)) from exc

        logger.info(
            "External API response",
            service=self.service_name,
            method=method,
            url=url,
            status=response.status_code,
        )

        if response.status_code >= 400:
            raise error_for_status(response.status_code, self._error_message(response))

        body = None
        if response.content:
            try:
                body = response.json()
            except ValueError as exc:
                raise RequestError("Response was not valid JSON") from exc

        UPSTREAM_REQUESTS.labels(
            service=self.service_name, method=method, outcome="success"
        ).inc()
        return body

    @staticmethod
    def _is_retryable(exc: ExternalApiError) -> bool:
        if isinstance(exc, NetworkError):
            return True
        return exc.status_code is not None and is_retryable_status(exc.status_code)

    @staticmethod
    def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Drop unset filters; booleans go over the wire as true/false"""
        if not params:
            return None
        cleaned = {}
        for key, value in params.items():
            if value is None:
                continue
            cleaned[key] = str(value).lower() if isinstance(value, bool) else value
        return cleaned or None

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason or f"HTTP {response.status_code}"


def create_api_client(service_name: str, settings: Settings) -> ExternalApiClient:
    """
    Build a client for a configured upstream service.

    Args:
        service_name: "merchant" or "order"
        settings: Application settings

    Returns:
        Configured ExternalApiClient
    """
    upstream = settings.upstream
    endpoints = {
        "merchant": (upstream.merchant_api_base_url, upstream.merchant_api_key),
        "order": (upstream.order_api_base_url, upstream.order_api_key),
    }
    if service_name not in endpoints:
        raise ValueError(f"Unknown upstream service: {service_name}")

    base_url, api_key = endpoints[service_name]
    return ExternalApiClient(
        base_url=base_url,
        api_key=api_key.get_secret_value(),
        timeout=upstream.timeout_seconds,
        max_retries=upstream.max_retries,
        backoff_base=upstream.backoff_base_seconds,
        backoff_max=upstream.backoff_max_seconds,
        service_name=service_name,
        user_agent=f"{settings.app_name}/{settings.version}",
    )
