#!/usr/bin/env python
"""
API Server Entry Point

Usage:
    python run_server.py --dev          Uvicorn with auto-reload
    python run_server.py                Uvicorn, WEB_CONCURRENCY workers
    python run_server.py --gunicorn     Gunicorn with gunicorn.conf.py

The order events consumer is started separately with run_consumer.py.
"""

import argparse
import os
import subprocess

APP = "admin_service.main:app"


def serve(host: str, port: int, dev: bool) -> None:
    import uvicorn

    if dev:
        uvicorn.run(APP, host=host, port=port, reload=True, reload_dirs=["admin_service"], log_level="debug")
        return

    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=int(os.getenv("WEB_CONCURRENCY", 4)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Admin Aggregation API server")
    parser.add_argument("--dev", action="store_true", help="auto-reload, debug logging")
    parser.add_argument("--gunicorn", action="store_true", help="run under gunicorn")
    parser.add_argument("--host", default=os.getenv("API_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", 9000)))
    args = parser.parse_args()

    if args.gunicorn:
        env = {**os.environ, "API_HOST": args.host, "API_PORT": str(args.port)}
        subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], check=True, env=env)
    else:
        serve(args.host, args.port, args.dev)


if __name__ == "__main__":
    main()
