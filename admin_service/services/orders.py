"""
Order Aggregation Service

Thin layer over the order service: normalizes upstream orders into one
projection, classifies them as successful or not and computes listing stats.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import structlog

from admin_service.clients import errors as api_errors
from admin_service.clients.external_api import ExternalApiClient
from admin_service.errors import NotFoundError, UpstreamError
from admin_service.services.merchants import unwrap_list, upstream_failure

logger = structlog.get_logger(__name__)

DEFAULT_SUCCESSFUL_STATUSES = frozenset({"COMPLETED", "SHIPPED", "DELIVERED"})


@dataclass
class OrderFilters:
    """Order listing filters"""
    status: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    store_name: Optional[str] = None
    store_email: Optional[str] = None
    merchant_id: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def upstream_params(self) -> Dict[str, Any]:
        """Filters the order service understands; name/email are applied locally"""
        return {
            "status": self.status,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "merchantId": self.merchant_id,
            "limit": self.limit,
            "offset": self.offset,
        }


class OrderService:
    """
    Order listing and pass-through operations.

    Args:
        client: Client for the order service
        successful_statuses: Statuses counted as successful (compared upper-cased)
    """

    def __init__(
        self,
        client: ExternalApiClient,
        successful_statuses: Iterable[str] = DEFAULT_SUCCESSFUL_STATUSES,
    ):
        self._client = client
        self._successful = {s.upper() for s in successful_statuses}

    # =========================================================================
    # LISTINGS
    # =========================================================================

    def list_orders(self, filters: Optional[OrderFilters] = None) -> Dict[str, Any]:
        filters = filters or OrderFilters()
        try:
            payload = self._client.get("/orders", params=filters.upstream_params())
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch orders", exc) from exc

        orders = [self.normalize_order(raw) for raw in unwrap_list(payload, "orders")]

        if filters.store_name:
            needle = filters.store_name.lower()
            orders = [o for o in orders if needle in (o.get("merchantName") or "").lower()]
        if filters.store_email:
            needle = filters.store_email.lower()
            orders = [o for o in orders if needle in (o.get("merchantEmail") or "").lower()]

        return {
            "orders": orders,
            "total": len(orders),
            "stats": self.calculate_order_stats(orders),
        }

    def get_order_stats(self) -> Dict[str, int]:
        try:
            payload = self._client.get("/orders")
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch order statistics", exc) from exc

        orders = [self.normalize_order(raw) for raw in unwrap_list(payload, "orders")]
        return self.calculate_order_stats(orders)

    def get_orders_by_merchant(
        self,
        merchant_id: str,
        filters: Optional[OrderFilters] = None,
    ) -> Dict[str, Any]:
        filters = filters or OrderFilters()
        params = {
            "merchantId": merchant_id,
            "status": filters.status,
            "startDate": filters.start_date,
            "endDate": filters.end_date,
            "limit": filters.limit,
        }
        try:
            payload = self._client.get(f"/merchants/{merchant_id}/orders", params=params)
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch merchant orders", exc) from exc

        orders = [self.normalize_order(raw) for raw in unwrap_list(payload, "orders")]
        return {
            "orders": orders,
            "total": len(orders),
            "stats": self.calculate_order_stats(orders),
        }

    # =========================================================================
    # SINGLE ORDERS
    # =========================================================================

    def get_order_by_id(self, order_id: str) -> Dict[str, Any]:
        try:
            raw = self._client.get(f"/orders/{order_id}")
        except api_errors.NotFoundError as exc:
            raise NotFoundError(f"Order {order_id} not found", "ORDER_NOT_FOUND") from exc
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch order", exc) from exc

        if not raw:
            raise NotFoundError(f"Order {order_id} not found", "ORDER_NOT_FOUND")
        return self.normalize_order(raw)

    def create_order(self, order_data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            raw = self._client.post("/orders", data=order_data)
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("create order", exc) from exc

        order = self.normalize_order(raw or {})
        logger.info("Order created upstream", order_id=order.get("id"))
        return order

    def update_order_status(self, order_id: str, status: str) -> Dict[str, Any]:
        try:
            raw = self._client.put(f"/orders/{order_id}", data={"status": status})
        except api_errors.NotFoundError as exc:
            raise NotFoundError(f"Order {order_id} not found", "ORDER_NOT_FOUND") from exc
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("update order status", exc) from exc

        return self.normalize_order(raw or {})

    def cancel_order(self, order_id: str) -> Dict[str, Any]:
        try:
            self._client.delete(f"/orders/{order_id}")
        except api_errors.NotFoundError as exc:
            raise NotFoundError(f"Order {order_id} not found", "ORDER_NOT_FOUND") from exc
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("cancel order", exc) from exc

        logger.info("Order cancelled upstream", order_id=order_id)
        return {"id": order_id, "cancelled": True}

    # =========================================================================
    # HELPERS
    # =========================================================================

    def is_successful(self, status: Optional[str]) -> bool:
        return bool(status) and status.upper() in self._successful

    def normalize_order(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """
        Project an upstream order onto the admin order shape.

        Upstream services disagree on a few names, so ``orderId``/``id``,
        ``merchantId``/``storeId``, ``amount``/``grandTotal`` and
        ``products``/``items`` are all accepted.
        """
        if not isinstance(raw, dict):
            raise UpstreamError("Unexpected upstream order payload")

        status = raw.get("status")
        amount = raw.get("amount", raw.get("grandTotal"))
        return {
            "id": raw.get("orderId", raw.get("id")),
            "merchantId": raw.get("merchantId", raw.get("storeId")),
            "merchantName": raw.get("merchantName"),
            "merchantEmail": raw.get("merchantEmail"),
            "customerEmail": raw.get("customerEmail"),
            "amount": amount,
            "status": status,
            "createdAt": raw.get("createdAt"),
            "updatedAt": raw.get("updatedAt"),
            "products": raw.get("products", raw.get("items")) or [],
            "isSuccessful": self.is_successful(status),
        }

    @staticmethod
    def calculate_order_stats(orders: List[Dict[str, Any]]) -> Dict[str, int]:
        total = len(orders)
        successful = sum(1 for order in orders if order.get("isSuccessful"))
        return {
            "totalOrders": total,
            "successfulOrders": successful,
            "failedOrders": total - successful,
        }
