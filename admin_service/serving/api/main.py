"""
FastAPI Application

Main entry point for the Admin Aggregation API.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app
from redis.exceptions import RedisError
import structlog

from admin_service.config import Settings, get_settings
from admin_service.config.logging import configure_logging
from admin_service.database.connection import close_database, get_session_factory, init_database
from admin_service.ingestion.stream_consumer import start_consumers
from admin_service.serving.api.dependencies import AppContainer, build_container
from admin_service.serving.api.exception_handlers import register_exception_handlers
from admin_service.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from admin_service.serving.api.routes import (
    auth_router,
    dashboard_router,
    health_router,
    merchants_router,
    orders_router,
)
from admin_service.serving.cache import CacheManager, close_redis, init_redis

logger = structlog.get_logger(__name__)


async def _init_stats_cache(settings: Settings) -> Optional[CacheManager]:
    if not settings.redis.enabled:
        return None
    try:
        client = await init_redis(settings.redis)
    except (RedisError, OSError) as e:
        logger.warning("Redis unavailable, stats caching disabled", error=str(e))
        return None
    return CacheManager(client, "stats", default_ttl=settings.redis.stats_ttl_seconds)


def _log_consumer_exit(task: asyncio.Task) -> None:
    """Log a consumer task that ended before shutdown"""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Order events consumer stopped",
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
    else:
        logger.warning("Order events consumer exited")


async def _stop_consumer(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        # Already reported by the done-callback
        logger.debug("Consumer task ended with error", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    configure_logging(settings=settings)

    logger.info("Starting Admin Aggregation API", environment=settings.app_env)

    owns_resources = app.state.container is None
    if owns_resources:
        await init_database()
        stats_cache = await _init_stats_cache(settings)
        app.state.container = build_container(settings, get_session_factory(), stats_cache)

    try:
        if settings.kafka.consumer_enabled:
            consumer_task = asyncio.create_task(start_consumers(app.state.container.dashboard, settings))
            consumer_task.add_done_callback(_log_consumer_exit)
            app.state.consumer_task = consumer_task
            logger.info("Order events consumer started", topic=settings.kafka.topic_order_events)

        yield

    finally:
        logger.info("Shutting down...")
        consumer_task = app.state.consumer_task
        app.state.consumer_task = None
        try:
            if consumer_task is not None:
                await _stop_consumer(consumer_task)
        finally:
            if owns_resources:
                await close_redis()
                await close_database()


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[AppContainer] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings; defaults to the environment
        container: Pre-built services; when given, start-up does not open the
            database or Redis

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Admin Aggregation API",
        description="Admin dashboard statistics and merchant/order aggregation",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container
    app.state.consumer_task = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )

    register_exception_handlers(app)

    prefix = settings.api_prefix
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["Auth"])
    app.include_router(merchants_router, prefix=f"{prefix}/merchants", tags=["Merchants"])
    app.include_router(orders_router, prefix=f"{prefix}/orders", tags=["Orders"])
    app.include_router(dashboard_router, prefix=f"{prefix}/dashboard", tags=["Dashboard"])

    if settings.monitoring.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    @app.get(f"{prefix}/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
        }

    return app
