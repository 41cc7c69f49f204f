"""
Serving Module
"""
from .cache import CacheManager, close_redis, init_redis

__all__ = [
    "CacheManager",
    "init_redis",
    "close_redis",
]
