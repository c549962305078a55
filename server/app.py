"""
Download, upload and ping endpoints.

``GET /download?size=<mb>``   fixed-size octet stream
``POST /upload``              counts the received body, ``{"size": n}``
``HEAD /ping``                204, no body
``GET /ping``                 ``{"status": "ok"}``
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from aiohttp import web

from client.constants import (
    BYTES_PER_MB,
    CHUNK_SIZE,
    DOWNLOAD_PATH,
    MAX_SIZE_MB,
    MIN_SIZE_MB,
    PING_PATH,
    UPLOAD_PATH,
)
from client.stats import megabytes_to_bytes

from .buffers import DEFAULT_POOL_LIMIT, BufferPool
from .ratelimit import (
    DEFAULT_MAX_REQUESTS,
    DEFAULT_WINDOW_SECONDS,
    RateLimiter,
    add_rate_limit_headers,
    rate_limit_middleware,
)

logger = logging.getLogger("speedtest.server")

NO_STORE = {"Cache-Control": "no-store"}


@dataclass
class ServerConfig:
    max_requests: int = DEFAULT_MAX_REQUESTS
    window_seconds: float = DEFAULT_WINDOW_SECONDS
    upload_cap_bytes: int = 10 * BYTES_PER_MB
    min_size_mb: float = MIN_SIZE_MB
    max_size_mb: float = MAX_SIZE_MB
    default_size_mb: float = 1.0
    pool_limit: int = DEFAULT_POOL_LIMIT


CONFIG_KEY = web.AppKey("config", ServerConfig)
POOL_KEY = web.AppKey("buffer_pool", BufferPool)
LIMITER_KEY = web.AppKey("rate_limiter", RateLimiter)


def parse_size(raw: Optional[str], config: ServerConfig) -> float:
    """Requested size in MB, clamped; missing or invalid input gives the default."""
    try:
        size = float(raw) if raw is not None else config.default_size_mb
    except ValueError:
        return config.default_size_mb
    if size != size or size <= 0:  # NaN or non-positive
        return config.default_size_mb
    return max(config.min_size_mb, min(size, config.max_size_mb))


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def download(request: web.Request) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    pool = request.app[POOL_KEY]

    size_bytes = megabytes_to_bytes(parse_size(request.query.get("size"), config))
    buffer = pool.get(size_bytes)
    try:
        response = web.StreamResponse(
            headers={"Content-Type": "application/octet-stream", **NO_STORE},
        )
        response.content_length = size_bytes
        await response.prepare(request)
        await response.write(buffer)
        await response.write_eof()
    finally:
        pool.release(buffer)
    return response


def _upload_error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status, headers=NO_STORE)


async def upload(request: web.Request) -> web.Response:
    cap = request.app[CONFIG_KEY].upload_cap_bytes

    declared = request.headers.get("Content-Length")
    if declared is not None:
        try:
            declared_size = int(declared)
        except ValueError:
            return _upload_error(400, "Invalid Content-Length")
        if declared_size < 0:
            return _upload_error(400, "Invalid Content-Length")
        if declared_size > cap:
            return _upload_error(413, "Payload too large")

    received = 0
    async for chunk in request.content.iter_chunked(CHUNK_SIZE):
        received += len(chunk)
        if received > cap:
            logger.warning("upload exceeded cap of %d bytes", cap)
            return _upload_error(413, "Payload too large")

    return web.json_response({"size": received}, headers=NO_STORE)


async def ping_head(request: web.Request) -> web.Response:
    return web.Response(status=204, headers=NO_STORE)


async def ping_get(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"}, headers=NO_STORE)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def create_app(
    config: Optional[ServerConfig] = None,
    limiter: Optional[RateLimiter] = None,
) -> web.Application:
    config = config or ServerConfig()
    limiter = limiter or RateLimiter(
        max_requests=config.max_requests,
        window_seconds=config.window_seconds,
    )

    app = web.Application(middlewares=[rate_limit_middleware(limiter)])
    app[CONFIG_KEY] = config
    app[POOL_KEY] = BufferPool(limit_per_size=config.pool_limit)
    app[LIMITER_KEY] = limiter
    app.on_response_prepare.append(add_rate_limit_headers)

    app.router.add_get(DOWNLOAD_PATH, download, allow_head=False)
    app.router.add_post(UPLOAD_PATH, upload)
    app.router.add_route("HEAD", PING_PATH, ping_head)
    app.router.add_get(PING_PATH, ping_get, allow_head=False)
    return app
