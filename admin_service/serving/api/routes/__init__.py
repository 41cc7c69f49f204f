"""
API Routes Module
"""
from .auth import router as auth_router
from .dashboard import router as dashboard_router
from .health import router as health_router
from .merchants import router as merchants_router
from .orders import router as orders_router

__all__ = [
    "auth_router",
    "dashboard_router",
    "health_router",
    "merchants_router",
    "orders_router",
]
