"""
Speed test server endpoints and HTTP session management.

All HTTP work goes through a single ``aiohttp.ClientSession`` managed via
async-context-manager protocol (``async with SpeedtestAPI(url) as api: ...``).
Server "selection" is a stub: the configured base URL is the only server.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_SERVER_URL,
    DOWNLOAD_PATH,
    MAX_CONNECTIONS,
    PING_PATH,
    UPLOAD_PATH,
)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass
class Server:
    """A speed test server exposing the download / upload / ping endpoints."""

    base_url: str
    id: int = 0
    name: str = ""

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> Server:
        return cls(
            base_url=str(data.get("url", DEFAULT_SERVER_URL)).rstrip("/"),
            id=int(data.get("id", 0)),
            name=data.get("name", ""),
        )

    @classmethod
    def from_url(cls, url: str) -> Server:
        return cls(base_url=url.rstrip("/"), name=url)

    # -- Derived URLs -------------------------------------------------------

    @property
    def download_url(self) -> str:
        return f"{self.base_url}{DOWNLOAD_PATH}"

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}{UPLOAD_PATH}"

    @property
    def ping_url(self) -> str:
        return f"{self.base_url}{PING_PATH}"

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.base_url}


@dataclass
class RateLimitInfo:
    """Parsed ``Retry-After`` / ``X-RateLimit-*`` headers of a 429 response."""

    retry_after: Optional[float] = None
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[int] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RateLimitInfo:
        def _num(name: str, cast=int):  # noqa: ANN001
            raw = headers.get(name)
            if raw is None:
                return None
            try:
                return cast(raw)
            except (TypeError, ValueError):
                return None

        return cls(
            retry_after=_num("Retry-After", float),
            limit=_num("X-RateLimit-Limit"),
            remaining=_num("X-RateLimit-Remaining"),
            reset=_num("X-RateLimit-Reset"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retry_after": self.retry_after,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset": self.reset,
        }


def format_size(size_mb: float) -> str:
    """``2.0`` -> ``"2"``, ``0.5`` -> ``"0.5"`` for the ``size`` query param."""
    return f"{size_mb:g}"


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class SpeedtestAPI:
    """Async context-manager owning the shared session for one server."""

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        connections: int = MAX_CONNECTIONS,
    ) -> None:
        self.server_url = server_url
        self.connections = connections
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SpeedtestAPI:
        connector = aiohttp.TCPConnector(
            limit=self.connections,
            limit_per_host=self.connections,
            force_close=False,
        )
        self._session = aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "SpeedtestAPI must be used as an async context manager "
                "(async with SpeedtestAPI(url) as api: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    @property
    def session(self) -> aiohttp.ClientSession:
        return self._ensure_session()

    def select_server(self) -> Server:
        """Return the configured server (no discovery or geolocation)."""
        return Server.from_url(self.server_url)

    async def check_health(self, server: Server) -> bool:
        """``GET /ping`` and confirm ``{"status": "ok"}``."""
        session = self._ensure_session()

        async with session.get(server.ping_url) as resp:
            resp.raise_for_status()
            data = await resp.json()

        return isinstance(data, dict) and data.get("status") == "ok"
