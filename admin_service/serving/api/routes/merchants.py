"""
Merchants API Endpoints

Store listings with sales/order totals computed from the order service.
Handlers are sync so the blocking upstream calls run in the threadpool.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from admin_service.serving.api.dependencies import (
    get_current_user,
    get_merchant_service,
    get_stats_cache,
)
from admin_service.serving.api.schemas import ApiResponse, ok
from admin_service.serving.cache import CacheManager
from admin_service.services import MerchantService, StoreFilters

router = APIRouter(dependencies=[Depends(get_current_user)])

STATS_KEY = "merchants"


@router.get("", response_model=ApiResponse)
def list_merchants(
    name: Optional[str] = None,
    email: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    is_old: Optional[bool] = Query(None, alias="isOld"),
    limit: Optional[int] = Query(None, ge=1),
    offset: Optional[int] = Query(None, ge=0),
    page: Optional[int] = Query(None, ge=1),
    merchants: MerchantService = Depends(get_merchant_service),
) -> ApiResponse:
    """
    List stores with computed ``totalSales``, ``totalOrders`` and ``isOld``.

    ``total`` is the upstream store count before the ``isOld`` filter; ``stats``
    describe the returned stores.
    """
    filters = StoreFilters(
        name=name,
        email=email,
        is_active=is_active,
        is_old=is_old,
        limit=limit,
        offset=offset,
        page=page,
    )
    result = merchants.list_stores(filters)
    return ok(
        "Stores retrieved successfully",
        result["stores"],
        total=result["total"],
        stats=result["stats"],
    )


@router.get("/stats", response_model=ApiResponse)
async def merchant_stats(
    merchants: MerchantService = Depends(get_merchant_service),
    cache: Optional[CacheManager] = Depends(get_stats_cache),
) -> ApiResponse:
    async def load():
        return await asyncio.to_thread(merchants.get_store_stats)

    stats = await cache.get_or_set(STATS_KEY, load) if cache else await load()
    return ok("Store statistics retrieved successfully", stats)


@router.get("/{store_id}", response_model=ApiResponse)
def get_merchant(store_id: str, merchants: MerchantService = Depends(get_merchant_service)) -> ApiResponse:
    return ok("Store retrieved successfully", merchants.get_store_by_id(store_id))


@router.delete("/{store_id}", response_model=ApiResponse)
async def delete_merchant(
    store_id: str,
    merchants: MerchantService = Depends(get_merchant_service),
    cache: Optional[CacheManager] = Depends(get_stats_cache),
) -> ApiResponse:
    deleted = await asyncio.to_thread(merchants.delete_store, store_id)
    if cache is not None:
        await cache.delete(STATS_KEY)
    return ok("Store deleted successfully", deleted)
