"""
Merchant Aggregation Service

Reads stores from the merchant service and joins them against the order
service's order list to compute per-store sales and order counts.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from admin_service.clients import errors as api_errors
from admin_service.clients.external_api import ExternalApiClient
from admin_service.domain.time_buckets import InvalidTimestamp, to_utc
from admin_service.errors import NotFoundError, UpstreamError

logger = structlog.get_logger(__name__)

OLD_STORE_AGE = timedelta(days=365)

# Profile fields copied from the merchant service as-is
STORE_FIELDS = (
    "id",
    "name",
    "email",
    "logo",
    "storeBaseCurrency",
    "banner",
    "address",
    "phone",
    "category",
    "website",
    "about",
    "country",
    "state",
    "city",
    "status",
    "whitelabel",
    "facebook",
    "whatsappLink",
    "whatsappPhone",
    "instagram",
    "twitter",
    "linkedin",
    "ownerId",
    "storeUrl",
    "isActive",
)


@dataclass
class StoreFilters:
    """Store listing filters; unset values are not sent upstream"""
    name: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None
    is_old: Optional[bool] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    page: Optional[int] = None

    def upstream_params(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "isActive": self.is_active,
            "limit": self.limit,
            "offset": self.offset,
            "page": self.page,
        }


def upstream_failure(action: str, exc: api_errors.ExternalApiError) -> UpstreamError:
    """Wrap a client failure, keeping the upstream status"""
    return UpstreamError(f"Failed to {action}: {exc}", upstream_status=exc.status_code)


def unwrap_list(payload: Any, key: str) -> List[Dict[str, Any]]:
    """Accept either a bare JSON array or an object wrapping it under ``key``/``data``"""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for candidate in (key, "data"):
            value = payload.get(candidate)
            if isinstance(value, list):
                return value
    raise UpstreamError(f"Unexpected upstream payload for {key}")


def parse_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning("Ignoring unparsable order amount", value=value)
        return Decimal("0")


class MerchantService:
    """
    Store listing and per-store aggregation.

    Args:
        store_client: Client for the merchant service
        order_client: Client for the order service
        paid_statuses: Upper-cased payment statuses that count towards sales
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        store_client: ExternalApiClient,
        order_client: ExternalApiClient,
        paid_statuses: Iterable[str] = ("PAID",),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._stores = store_client
        self._orders = order_client
        self._paid_statuses = {s.upper() for s in paid_statuses}
        self._clock = clock

    def list_stores(self, filters: Optional[StoreFilters] = None) -> Dict[str, Any]:
        """
        List stores with computed totals, optionally filtered by age.

        Returns:
            dict with ``stores``, ``total`` (upstream count before the age
            filter) and ``stats`` (computed over the returned stores)
        """
        filters = filters or StoreFilters()
        try:
            raw_stores = unwrap_list(self._stores.get("/all-stores", params=filters.upstream_params()), "stores")
            raw_orders = unwrap_list(self._orders.get("/all-orders"), "orders")
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch stores", exc) from exc

        sales, counts = self._order_totals(raw_orders)
        now = self._clock()

        stores = []
        for raw in raw_stores:
            store = self._project_store(raw)
            store_id = store.get("id")
            store["isOld"] = self.is_store_old(raw.get("createdAt"), now)
            store["totalSales"] = f"{sales.get(store_id, Decimal('0')):.2f}"
            store["totalOrders"] = counts.get(store_id, 0)
            stores.append(store)

        if filters.is_old is not None:
            stores = [s for s in stores if s["isOld"] == filters.is_old]

        logger.info(
            "Stores aggregated",
            upstream_total=len(raw_stores),
            returned=len(stores),
            orders_scanned=len(raw_orders),
        )
        return {
            "stores": stores,
            "total": len(raw_stores),
            "stats": self.calculate_store_stats(stores),
        }

    def get_store_stats(self) -> Dict[str, Any]:
        """Store statistics as reported by the merchant service."""
        try:
            return self._stores.get("/stores/stats") or {}
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch store stats", exc) from exc

    def get_store_by_id(self, store_id: str) -> Dict[str, Any]:
        try:
            raw = self._stores.get(f"/stores/{store_id}")
        except api_errors.NotFoundError as exc:
            raise NotFoundError(f"Store {store_id} not found", "STORE_NOT_FOUND") from exc
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("fetch store", exc) from exc

        if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
            raw = raw["data"]
        if not raw:
            raise NotFoundError(f"Store {store_id} not found", "STORE_NOT_FOUND")
        return self._project_store(raw)

    def delete_store(self, store_id: str) -> Dict[str, Any]:
        try:
            self._stores.delete(f"/stores/{store_id}")
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("delete store", exc) from exc

        logger.info("Store deleted", store_id=store_id)
        return {"id": store_id, "deleted": True}

    def count_active_stores(self) -> int:
        """Number of upstream stores flagged active."""
        try:
            raw_stores = unwrap_list(self._stores.get("/all-stores", params={"isActive": True}), "stores")
        except api_errors.ExternalApiError as exc:
            raise upstream_failure("count active stores", exc) from exc
        return sum(1 for store in raw_stores if store.get("isActive") is True)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _order_totals(self, orders: List[Dict[str, Any]]):
        """Per-store paid sales and order counts in one pass"""
        sales: Dict[str, Decimal] = {}
        counts: Dict[str, int] = {}
        for order in orders:
            store_id = order.get("storeId") or order.get("merchantId")
            if store_id is None:
                continue
            counts[store_id] = counts.get(store_id, 0) + 1
            payment_status = str(order.get("paymentStatus") or "").upper()
            if payment_status in self._paid_statuses:
                amount = parse_amount(order.get("grandTotal", order.get("amount")))
                sales[store_id] = sales.get(store_id, Decimal("0")) + amount
        return sales, counts

    @staticmethod
    def _project_store(raw: Dict[str, Any]) -> Dict[str, Any]:
        store = {field: raw.get(field) for field in STORE_FIELDS}
        created_at = raw.get("createdAt")
        if created_at:
            try:
                created_at = to_utc(created_at).isoformat().replace("+00:00", "Z")
            except InvalidTimestamp:
                logger.warning("Store has unparsable createdAt", store_id=raw.get("id"), created_at=created_at)
        store["createdAt"] = created_at
        return store

    @staticmethod
    def is_store_old(created_at: Any, now: datetime) -> bool:
        """A store is old when it was created more than 365 days before ``now``."""
        if not created_at:
            return False
        try:
            return now - to_utc(created_at) > OLD_STORE_AGE
        except InvalidTimestamp:
            return False

    @staticmethod
    def calculate_store_stats(stores: List[Dict[str, Any]]) -> Dict[str, int]:
        total = len(stores)
        old = sum(1 for store in stores if store.get("isOld"))
        return {
            "totalStores": total,
            "oldStores": old,
            "newStores": total - old,
        }
