#!/usr/bin/env python3
"""
Local development server runner.

Runs the webhook delivery FastAPI application with uvicorn. Unless
STORAGE_BACKEND is already set, the in-memory store is used so no AWS
tables are needed; deliveries can then be triggered with
POST /webhook-delivery and inspected under /webhook-delivery/deliveries/.

Usage:
    python run_local.py
    python run_local.py --port 8000
    python run_local.py --reload  # Auto-reload on code changes
    STORAGE_BACKEND=dynamodb python run_local.py  # Use real DynamoDB tables
"""

import argparse
import os
from pathlib import Path

import uvicorn

project_root = Path(__file__).parent


def main():
    parser = argparse.ArgumentParser(
        description="Run the webhook delivery service locally with uvicorn"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload on code changes"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level for uvicorn (default: info)"
    )

    args = parser.parse_args()

    # Read by Settings when the app module is imported
    os.environ.setdefault("STORAGE_BACKEND", "memory")
    os.environ.setdefault("METRICS_ENABLED", "false")

    print("=" * 60)
    print("Starting Webhook Delivery Service (Local Development)")
    print("=" * 60)
    print(f"Storage backend: {os.environ['STORAGE_BACKEND']}")
    print(f"Server: http://{args.host}:{args.port}")
    print(f"API Docs: http://{args.host}:{args.port}/docs")
    print(f"Health: http://{args.host}:{args.port}/health")
    print(f"Sweep: POST http://{args.host}:{args.port}/webhook-delivery")
    print("=" * 60)

    uvicorn.run(
        "webhook_delivery.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
        reload_dirs=[str(project_root / "src")] if args.reload else None
    )


if __name__ == "__main__":
    main()
