#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
"""

import argparse
import os

import uvicorn

from surface_analytics.config import get_settings


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    uvicorn.run(
        "surface_analytics.main:app",
        host=get_settings().api_host,
        port=port,
        reload=True,
        reload_dirs=["surface_analytics"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(port: int):
    """Run production server with Uvicorn workers."""
    uvicorn.run(
        "surface_analytics.main:app",
        host=get_settings().api_host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
        date_header=True,
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Surface Analytics API Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode with auto-reload",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run on (default: API_PORT)",
    )

    args = parser.parse_args()
    port = args.port or get_settings().api_port

    if args.dev:
        print("🚀 Starting development server...")
        run_dev_server(port)
    else:
        print("🚀 Starting production server with Uvicorn...")
        run_prod_server(port)
