#!/usr/bin/env python3
"""
Serve stored replay results over HTTP.

**Usage**:
    python actions/serve_results.py
    python actions/serve_results.py --host 0.0.0.0 --port 8080

Host/port default to SERVER_HOST / SERVER_PORT, Redis to REDIS_HOST /
REDIS_PORT / REDIS_DB (see .env.example).

Routes: GET /get-all-data, GET /detail/<id>/<version>, GET /health.
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import bar_replay modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bar_replay.api.app import create_app
from bar_replay.config.settings import get_settings
from bar_replay.storage.result_store import ResultStore
from bar_replay.utils.logging import configure_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Serve stored replay results over HTTP")
    parser.add_argument("--host", default=None, help="Bind host (default: SERVER_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: SERVER_PORT)")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.logging)

    store = ResultStore.from_settings(settings.redis)
    app = create_app(store)

    host = args.host or settings.server.host
    port = args.port or settings.server.port
    print(f"Serving results from redis://{settings.redis.host}:{settings.redis.port}/{settings.redis.db} "
          f"on http://{host}:{port}")
    app.run(host=host, port=port, debug=args.debug)
    return 0


if __name__ == "__main__":
    sys.exit(main())
