"""
API Dependencies

The application container holds the services built at start-up; route
handlers reach them through FastAPI dependencies.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from admin_service.clients import create_api_client
from admin_service.config import Settings
from admin_service.errors import AuthError
from admin_service.serving.cache import CacheManager
from admin_service.services import (
    AuthService,
    DashboardService,
    EmailService,
    MerchantService,
    OrderService,
)
from admin_service.services.auth import AuthUser


@dataclass
class AppContainer:
    """Services shared by all requests"""
    settings: Settings
    session_factory: Optional[async_sessionmaker[AsyncSession]]
    auth: AuthService
    dashboard: DashboardService
    merchants: MerchantService
    orders: OrderService
    stats_cache: Optional[CacheManager] = None


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    stats_cache: Optional[CacheManager] = None,
) -> AppContainer:
    """Wire clients and services from settings"""
    merchants = MerchantService(
        create_api_client("merchant", settings),
        create_api_client("order", settings),
        paid_statuses=settings.order_status.paid_payment_statuses,
    )
    orders = OrderService(
        create_api_client("order", settings),
        successful_statuses=settings.order_status.successful_statuses,
    )

    async def count_active_stores() -> int:
        return await asyncio.to_thread(merchants.count_active_stores)

    return AppContainer(
        settings=settings,
        session_factory=session_factory,
        auth=AuthService(session_factory, settings.security, EmailService(settings.email)),
        dashboard=DashboardService(session_factory, active_store_counter=count_active_stores),
        merchants=merchants,
        orders=orders,
        stats_cache=stats_cache,
    )


def get_container(request: Request) -> AppContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Application container not initialized")
    return container


def get_auth_service(container: AppContainer = Depends(get_container)) -> AuthService:
    return container.auth


def get_dashboard_service(container: AppContainer = Depends(get_container)) -> DashboardService:
    return container.dashboard


def get_merchant_service(container: AppContainer = Depends(get_container)) -> MerchantService:
    return container.merchants


def get_order_service(container: AppContainer = Depends(get_container)) -> OrderService:
    return container.orders


def get_stats_cache(container: AppContainer = Depends(get_container)) -> Optional[CacheManager]:
    return container.stats_cache


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> AuthUser:
    """Resolve the bearer access token to a user; 401 otherwise."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("Access token is required", "TOKEN_REQUIRED")

    claims = auth.verify_access_token(credentials.credentials)
    user = await auth.get_user_by_id(claims.get("userId", ""))
    if user is None:
        raise AuthError("User not found", "USER_NOT_FOUND")
    return user
