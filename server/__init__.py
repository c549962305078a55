"""Speed test server -- aiohttp.web endpoints the client measures against."""

from .app import ServerConfig, create_app
from .buffers import BufferPool
from .ratelimit import RateLimiter

__all__ = ["BufferPool", "RateLimiter", "ServerConfig", "create_app"]
