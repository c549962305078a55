"""``python -m server`` -- serve the measurement endpoints."""
from __future__ import annotations

import argparse

from aiohttp import web

from client.events import debug_enabled, setup_logging

from .app import ServerConfig, create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="Speed test endpoint server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Port (default: 8080)")
    parser.add_argument("--max-requests", type=int, default=ServerConfig.max_requests,
                        metavar="N", help="Requests per IP per window (default: 200)")
    parser.add_argument("--window", type=float, default=ServerConfig.window_seconds,
                        metavar="SECS", help="Rate-limit window in seconds (default: 60)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    setup_logging(debug_enabled(args.debug))
    config = ServerConfig(max_requests=args.max_requests, window_seconds=args.window)
    web.run_app(create_app(config), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
