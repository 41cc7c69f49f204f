#!/usr/bin/env python
"""
Order Events Consumer Entry Point

Runs the dashboard stats consumer as its own process, next to API workers
started with KAFKA_CONSUMER_ENABLED=false.

Usage:
    python run_consumer.py
"""

import asyncio

import structlog

from admin_service.config import get_settings
from admin_service.config.logging import configure_logging
from admin_service.database.connection import close_database, get_session_factory, init_database
from admin_service.ingestion.stream_consumer import start_consumers
from admin_service.services import DashboardService

logger = structlog.get_logger(__name__)


async def main() -> None:
    settings = get_settings()
    configure_logging()

    await init_database()
    try:
        # Counters only; the weekly active-store read is served by the API
        dashboard = DashboardService(get_session_factory())
        await start_consumers(dashboard, settings)
    finally:
        await close_database()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Consumer interrupted")
