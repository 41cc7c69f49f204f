"""
Database Module
"""
from .connection import init_database, close_database, get_db, get_session_factory
from .models import Base, DashboardStat, FailedOrderReason, MetricType, User

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_session_factory",
    "Base",
    "DashboardStat",
    "FailedOrderReason",
    "MetricType",
    "User",
]
