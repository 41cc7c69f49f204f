"""
Gunicorn Configuration for the Admin Aggregation API

    gunicorn admin_service.main:app -c gunicorn.conf.py

Workers are Uvicorn workers. Each one builds its own database pool, Redis pool
and upstream HTTP sessions in the application lifespan. Keep
KAFKA_CONSUMER_ENABLED off here and run run_consumer.py once instead, or every
worker joins the consumer group.
"""

import multiprocessing
import os

bind = f"{os.getenv('API_HOST', '0.0.0.0')}:{os.getenv('API_PORT', '9000')}"
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"

# Must cover upstream retries with backoff
timeout = int(os.getenv("GUNICORN_TIMEOUT", 90))
graceful_timeout = 30
keepalive = 5

max_requests = 5000
max_requests_jitter = 500

proc_name = "admin-aggregation-api"

# Access lines come from RequestLoggingMiddleware
accesslog = None
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()


def when_ready(server):
    server.log.info("Admin Aggregation API listening on %s with %s workers", bind, workers)


def post_fork(server, worker):
    if os.getenv("KAFKA_CONSUMER_ENABLED", "false").lower() == "true":
        worker.log.warning("KAFKA_CONSUMER_ENABLED is set; worker %s will start its own consumer", worker.pid)


def worker_abort(worker):
    """Called on SIGABRT, usually a worker timeout."""
    worker.log.warning("Worker %s aborted", worker.pid)
