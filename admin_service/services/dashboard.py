"""
Dashboard Statistics Aggregator

Maintains the rolling weekly/monthly counters behind the admin dashboard and
answers the dashboard read queries. The service knows nothing about HTTP or the
event stream: the API routes and the stream consumer call it the same way.

Counter updates are a single ``INSERT ... ON CONFLICT DO UPDATE`` statement
against the bucket's unique constraint, so concurrent increments of the same
bucket never lose updates.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Type, Union

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from admin_service.database.connection import get_db
from admin_service.database.models import DashboardStat, FailedOrderReason, MetricType
from admin_service.domain.time_buckets import (
    InvalidTimestamp,
    TimeBucket,
    TimestampLike,
    time_bucket,
    to_utc,
    week_buckets,
)
from admin_service.errors import InternalError, ValidationError

logger = structlog.get_logger(__name__)

TOP_REASONS = 5
OTHERS_LABEL = "Others"

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

CounterModel = Union[Type[DashboardStat], Type[FailedOrderReason]]


@dataclass
class WeekTotals:
    """Counter totals for one ISO week"""
    orders: int
    failed_orders: int
    buckets: List[TimeBucket]

    def as_dict(self) -> dict:
        return {
            "orders": self.orders,
            "failedOrders": self.failed_orders,
            "buckets": [b.as_dict() for b in self.buckets],
        }


class DashboardService:
    """
    Dashboard counter aggregator.

    Example:
        dashboard = DashboardService(session_factory)
        await dashboard.record_metric("orders", "2025-03-10T10:00:00Z", 1)
        trend = await dashboard.monthly_order_trend(2025)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        active_store_counter: Optional[Callable[[], Awaitable[int]]] = None,
    ):
        self._session_factory = session_factory
        self._active_store_counter = active_store_counter

    # =========================================================================
    # WRITES
    # =========================================================================

    async def record_metric(
        self,
        metric_type: Union[str, MetricType],
        timestamp: TimestampLike,
        delta: int = 1,
    ) -> TimeBucket:
        """
        Add ``delta`` to the metric's bucket, creating the row on first use.

        Returns:
            The bucket that was updated
        """
        metric = self._metric_type(metric_type)
        bucket = self._bucket(timestamp)
        self._check_delta(delta)

        await self._increment(
            DashboardStat,
            {"metric_type": metric.value, **bucket.as_dict()},
            delta,
        )
        logger.debug("Dashboard stat incremented", metric_type=metric.value, delta=delta, **bucket.as_dict())
        return bucket

    async def record_failure_reason(
        self,
        reason: str,
        timestamp: TimestampLike,
        delta: int = 1,
    ) -> TimeBucket:
        """Add ``delta`` to the failure reason's bucket, creating the row on first use."""
        if not reason or not reason.strip():
            raise ValidationError("Failure reason is required")
        bucket = self._bucket(timestamp)
        self._check_delta(delta)

        await self._increment(
            FailedOrderReason,
            {"reason": reason.strip(), **bucket.as_dict()},
            delta,
        )
        logger.debug("Failure reason incremented", reason=reason, delta=delta, **bucket.as_dict())
        return bucket

    async def _increment(self, model: CounterModel, key: Dict[str, object], delta: int) -> None:
        async with get_db(self._session_factory) as db:
            dialect = db.get_bind().dialect.name
            insert = _INSERTS.get(dialect)
            if insert is None:
                raise InternalError(f"Atomic counter upsert is not supported on {dialect}")

            stmt = insert(model).values(**key, value=delta)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(key.keys()),
                set_={
                    "value": model.value + stmt.excluded.value,
                    "updated_at": func.now(),
                },
            )
            await db.execute(stmt)

    # =========================================================================
    # READS
    # =========================================================================

    async def weekly_order_summary(self, now: Optional[TimestampLike] = None) -> dict:
        """
        Order and failure totals for the current and previous ISO week.

        The previous week is derived by stepping back seven days from ``now``.
        ``activeStores`` is the upstream count of active stores, or None when
        no store counter is configured.
        """
        current = self._now(now)
        this_week = await self._week_totals(current)
        last_week = await self._week_totals(current - timedelta(days=7))

        active_stores = None
        if self._active_store_counter is not None:
            active_stores = await self._active_store_counter()

        return {
            "thisWeek": this_week.as_dict(),
            "lastWeek": last_week.as_dict(),
            "activeStores": active_stores,
        }

    async def monthly_order_trend(self, year: int) -> List[dict]:
        """Orders summed per month of ``year``, one entry per month present."""
        query = (
            select(DashboardStat.month, func.sum(DashboardStat.value).label("value"))
            .where(
                and_(
                    DashboardStat.year == year,
                    DashboardStat.metric_type == MetricType.ORDERS.value,
                )
            )
            .group_by(DashboardStat.month)
            .order_by(DashboardStat.month)
        )
        async with get_db(self._session_factory) as db:
            result = await db.execute(query)
            return [{"month": row.month, "value": int(row.value or 0)} for row in result]

    async def failure_breakdown(self, year: int) -> List[dict]:
        """
        Top failure reasons of ``year`` plus an "Others" remainder.

        Reasons are ranked by total descending (ties by name). The "Others"
        entry is only present when the remainder is positive.
        """
        query = (
            select(FailedOrderReason.reason, func.sum(FailedOrderReason.value).label("value"))
            .where(FailedOrderReason.year == year)
            .group_by(FailedOrderReason.reason)
        )
        async with get_db(self._session_factory) as db:
            result = await db.execute(query)
            totals = [(row.reason, int(row.value or 0)) for row in result]

        return reduce_top_reasons(totals)

    async def weekly_failure_reasons(self, now: Optional[TimestampLike] = None) -> List[dict]:
        """Failure reasons recorded in the ISO week of ``now``, summed per reason."""
        buckets = week_buckets(self._now(now))
        query = (
            select(FailedOrderReason.reason, func.sum(FailedOrderReason.value).label("value"))
            .where(self._bucket_filter(FailedOrderReason, buckets))
            .group_by(FailedOrderReason.reason)
            .order_by(func.sum(FailedOrderReason.value).desc(), FailedOrderReason.reason)
        )
        async with get_db(self._session_factory) as db:
            result = await db.execute(query)
            return [{"reason": row.reason, "value": int(row.value or 0)} for row in result]

    async def _week_totals(self, moment: datetime) -> WeekTotals:
        buckets = week_buckets(moment)
        orders_query = select(func.coalesce(func.sum(DashboardStat.value), 0)).where(
            and_(
                DashboardStat.metric_type == MetricType.ORDERS.value,
                self._bucket_filter(DashboardStat, buckets),
            )
        )
        failures_query = select(func.coalesce(func.sum(FailedOrderReason.value), 0)).where(
            self._bucket_filter(FailedOrderReason, buckets)
        )
        async with get_db(self._session_factory) as db:
            orders = (await db.execute(orders_query)).scalar_one()
            failures = (await db.execute(failures_query)).scalar_one()

        return WeekTotals(orders=int(orders), failed_orders=int(failures), buckets=buckets)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _bucket_filter(model: CounterModel, buckets: Sequence[TimeBucket]):
        return or_(
            *[
                and_(model.year == b.year, model.month == b.month, model.week == b.week)
                for b in buckets
            ]
        )

    @staticmethod
    def _metric_type(metric_type: Union[str, MetricType]) -> MetricType:
        try:
            return MetricType(metric_type)
        except ValueError as exc:
            allowed = ", ".join(m.value for m in MetricType)
            raise ValidationError(f"metricType must be one of: {allowed}") from exc

    @staticmethod
    def _bucket(timestamp: TimestampLike) -> TimeBucket:
        try:
            return time_bucket(timestamp)
        except InvalidTimestamp as exc:
            raise ValidationError(str(exc)) from exc

    @staticmethod
    def _check_delta(delta: int) -> None:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("value must be an integer")
        if delta < 0:
            raise ValidationError("value must not be negative")

    @staticmethod
    def _now(now: Optional[TimestampLike]) -> datetime:
        if now is None:
            return datetime.now(timezone.utc)
        try:
            return to_utc(now)
        except InvalidTimestamp as exc:
            raise ValidationError(str(exc)) from exc


def reduce_top_reasons(totals: Sequence[tuple], limit: int = TOP_REASONS) -> List[dict]:
    """
    Reduce (reason, value) totals to the top ``limit`` plus an "Others" entry.

    Example:
        >>> reduce_top_reasons([("a", 5), ("b", 1)], limit=1)
        [{'reason': 'a', 'value': 5}, {'reason': 'Others', 'value': 1}]
    """
    ranked = sorted(totals, key=lambda item: (-item[1], item[0]))
    top = ranked[:limit]
    grand_total = sum(value for _, value in ranked)
    top_total = sum(value for _, value in top)

    breakdown = [{"reason": reason, "value": value} for reason, value in top]
    others = grand_total - top_total
    if others > 0:
        breakdown.append({"reason": OTHERS_LABEL, "value": others})
    return breakdown
