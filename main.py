#!/usr/bin/env python3
"""
Livestock Programme Dashboard: launch the API server.

Usage:
    python main.py                              # http://localhost:8000
    python main.py --port 9000                  # http://localhost:9000
    python main.py --seed data/seed.json        # in-memory store seeded from JSON
    python main.py --firestore --project my-gcp # Google Cloud Firestore
    python main.py --reload --open-docs         # development mode
"""

from __future__ import annotations

import argparse
import os
import threading
import webbrowser
from pathlib import Path

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Launch the livestock programme dashboard API.",
    )
    server = parser.add_argument_group("server")
    server.add_argument("--host", default=os.getenv("APP_HOST", "127.0.0.1"),
                        help="bind address (env: APP_HOST)")
    server.add_argument("--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
                        help="listen port (env: APP_PORT)")
    server.add_argument("--reload", action="store_true",
                        help="restart when source files change")
    server.add_argument("--open-docs", action="store_true",
                        help="open /docs in a browser after start-up")

    store = parser.add_argument_group("data source")
    store.add_argument("--seed", type=Path, default=None,
                       help="JSON file of {collection: [documents]} for the in-memory store")
    store.add_argument("--firestore", action="store_true",
                       help="use Google Cloud Firestore instead of memory")
    store.add_argument("--project", default=None,
                       help="Firestore project id (env: APP_FIRESTORE_PROJECT)")
    return parser


def export_settings(args: argparse.Namespace) -> None:
    """Copy data-source flags into the environment read by AppConfig.

    uvicorn's reloader starts a fresh interpreter, so flags only reach
    the app through environment variables.
    """
    if args.seed is not None:
        os.environ["APP_SEED_PATH"] = str(args.seed)
    if args.firestore:
        os.environ["APP_DATA_SOURCE"] = "firestore"
    if args.project:
        os.environ["APP_FIRESTORE_PROJECT"] = args.project


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if args.seed is not None and not args.seed.exists():
        parser.error(f"seed file not found: {args.seed}")
    export_settings(args)

    shown_host = "localhost" if args.host == "0.0.0.0" else args.host
    url = f"http://{shown_host}:{args.port}"
    print(f"Serving livestock dashboard API on {url} "
          f"(data source: {os.getenv('APP_DATA_SOURCE', 'memory')})")

    if args.open_docs:
        threading.Timer(1.5, webbrowser.open, args=(f"{url}/docs",)).start()

    uvicorn.run("api.app:app", host=args.host, port=args.port,
                reload=args.reload, log_level="info")


if __name__ == "__main__":
    main()
