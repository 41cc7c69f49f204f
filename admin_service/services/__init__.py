"""
Application Services
"""
from .auth import AuthService
from .dashboard import DashboardService
from .email import EmailService
from .merchants import MerchantService, StoreFilters
from .orders import OrderFilters, OrderService

__all__ = [
    "AuthService",
    "DashboardService",
    "EmailService",
    "MerchantService",
    "StoreFilters",
    "OrderFilters",
    "OrderService",
]
