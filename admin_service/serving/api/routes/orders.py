"""
Orders API Endpoints

Normalized views over the order service.
"""

import asyncio
from dataclasses import replace
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from admin_service.serving.api.dependencies import (
    get_current_user,
    get_order_service,
    get_stats_cache,
)
from admin_service.serving.api.schemas import ApiResponse, OrderStatusUpdateRequest, ok
from admin_service.serving.cache import CacheManager
from admin_service.services import OrderFilters, OrderService

router = APIRouter(dependencies=[Depends(get_current_user)])

STATS_KEY = "orders"


def order_filters(
    status: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    store_name: Optional[str] = Query(None, alias="storeName"),
    store_email: Optional[str] = Query(None, alias="storeEmail"),
    limit: Optional[int] = Query(None, ge=1),
    offset: Optional[int] = Query(None, ge=0),
) -> OrderFilters:
    """Query filters shared by the order listings; the merchant comes from the route"""
    return OrderFilters(
        status=status,
        start_date=start_date,
        end_date=end_date,
        store_name=store_name,
        store_email=store_email,
        limit=limit,
        offset=offset,
    )


async def invalidate_stats(cache: Optional[CacheManager]) -> None:
    if cache is not None:
        await cache.delete(STATS_KEY)


@router.get("", response_model=ApiResponse)
def list_orders(
    merchant_id: Optional[str] = Query(None, alias="merchantId"),
    filters: OrderFilters = Depends(order_filters),
    orders: OrderService = Depends(get_order_service),
) -> ApiResponse:
    result = orders.list_orders(replace(filters, merchant_id=merchant_id))
    return ok("Orders retrieved successfully", result["orders"], total=result["total"], stats=result["stats"])


@router.get("/stats", response_model=ApiResponse)
async def order_stats(
    orders: OrderService = Depends(get_order_service),
    cache: Optional[CacheManager] = Depends(get_stats_cache),
) -> ApiResponse:
    async def load():
        return await asyncio.to_thread(orders.get_order_stats)

    stats = await cache.get_or_set(STATS_KEY, load) if cache else await load()
    return ok("Order statistics retrieved successfully", stats)


@router.get("/merchant/{merchant_id}", response_model=ApiResponse)
def list_merchant_orders(
    merchant_id: str,
    filters: OrderFilters = Depends(order_filters),
    orders: OrderService = Depends(get_order_service),
) -> ApiResponse:
    result = orders.get_orders_by_merchant(merchant_id, filters)
    return ok(
        "Merchant orders retrieved successfully",
        result["orders"],
        total=result["total"],
        stats=result["stats"],
    )


@router.get("/{order_id}", response_model=ApiResponse)
def get_order(order_id: str, orders: OrderService = Depends(get_order_service)) -> ApiResponse:
    return ok("Order retrieved successfully", orders.get_order_by_id(order_id))


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order: Dict[str, Any] = Body(...),
    orders: OrderService = Depends(get_order_service),
    cache: Optional[CacheManager] = Depends(get_stats_cache),
) -> ApiResponse:
    created = await asyncio.to_thread(orders.create_order, order)
    await invalidate_stats(cache)
    return ok("Order created successfully", created)


@router.put("/{order_id}", response_model=ApiResponse)
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdateRequest,
    orders: OrderService = Depends(get_order_service),
    cache: Optional[CacheManager] = Depends(get_stats_cache),
) -> ApiResponse:
    updated = await asyncio.to_thread(orders.update_order_status, order_id, body.status)
    await invalidate_stats(cache)
    return ok("Order status updated successfully", updated)


@router.delete("/{order_id}", response_model=ApiResponse)
async def cancel_order(
    order_id: str,
    orders: OrderService = Depends(get_order_service),
    cache: Optional[CacheManager] = Depends(get_stats_cache),
) -> ApiResponse:
    cancelled = await asyncio.to_thread(orders.cancel_order, order_id)
    await invalidate_stats(cache)
    return ok("Order cancelled successfully", cancelled)
