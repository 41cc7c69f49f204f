"""
Dashboard API Endpoints

Weekly summary, monthly trend and failure breakdown reads, plus the
synchronous counter updates used by services that do not publish events.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from admin_service.serving.api.dependencies import get_current_user, get_dashboard_service
from admin_service.serving.api.schemas import (
    ApiResponse,
    FailureReasonUpdateRequest,
    StatUpdateRequest,
    ok,
)
from admin_service.services import DashboardService

router = APIRouter(dependencies=[Depends(get_current_user)])


def _year(year: Optional[int]) -> int:
    return year or datetime.now(timezone.utc).year


@router.get("/stats", response_model=ApiResponse)
async def dashboard_stats(dashboard: DashboardService = Depends(get_dashboard_service)) -> ApiResponse:
    """Orders and failed orders for this and last ISO week, with the active store count."""
    summary = await dashboard.weekly_order_summary()
    return ok("Dashboard statistics retrieved successfully", summary)


@router.put("/stats", response_model=ApiResponse)
async def update_dashboard_stat(
    body: StatUpdateRequest,
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse:
    bucket = await dashboard.record_metric(body.metric_type, body.created_at, body.value)
    return ok(
        "Dashboard statistic updated successfully",
        {"metricType": body.metric_type, "value": body.value, **bucket.as_dict()},
    )


@router.get("/month-orders-trends", response_model=ApiResponse)
async def month_orders_trends(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse:
    trend = await dashboard.monthly_order_trend(_year(year))
    return ok("Monthly order trends retrieved successfully", trend)


@router.get("/failed-order-reasons", response_model=ApiResponse)
async def failed_order_reasons(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse:
    breakdown = await dashboard.failure_breakdown(_year(year))
    return ok("Failed order reasons retrieved successfully", breakdown)


@router.get("/failed-order-reasons/this-week", response_model=ApiResponse)
async def failed_order_reasons_this_week(
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse:
    reasons = await dashboard.weekly_failure_reasons()
    return ok("This week's failed order reasons retrieved successfully", reasons)


@router.put("/failed-order-reasons", response_model=ApiResponse)
async def update_failed_order_reason(
    body: FailureReasonUpdateRequest,
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse:
    bucket = await dashboard.record_failure_reason(body.reason, body.created_at, body.value)
    return ok(
        "Failed order reason updated successfully",
        {"reason": body.reason, "value": body.value, **bucket.as_dict()},
    )
