"""
Upload speed test module.

Each trial POSTs a payload of the requested size as a streamed body.  The
timing window runs from the moment the first chunk is handed to the
transport until the last one has been written, so server processing and
the response round-trip stay out of the figure.
"""
from __future__ import annotations

import os
from typing import AsyncIterator, Callable, Dict, Optional

import aiohttp

from .api import Server
from .constants import CHUNK_SIZE
from .errors import TrialError
from .stats import bytes_to_mbps, megabytes_to_bytes
from .throughput import ThroughputResult, ThroughputTester

UploadResult = ThroughputResult


def create_upload_payload(size_mb: float) -> bytes:
    """Random bytes of exactly ``round(size_mb * 1 MiB)`` length."""
    return os.urandom(megabytes_to_bytes(size_mb))


class TimedBody:
    """Async-iterable request body that records transmission start and end."""

    def __init__(
        self,
        payload: bytes,
        clock: Callable[[], float],
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self.payload = payload
        self.chunk_size = chunk_size
        self.started: Optional[float] = None
        self.finished: Optional[float] = None
        self._clock = clock

    async def stream(self) -> AsyncIterator[bytes]:
        view = memoryview(self.payload)
        self.started = self._clock()
        for offset in range(0, len(view), self.chunk_size):
            yield bytes(view[offset:offset + self.chunk_size])
        # Resumed only once the transport has taken the last chunk.
        self.finished = self._clock()

    @property
    def elapsed(self) -> float:
        if self.started is None or self.finished is None:
            return 0.0
        return self.finished - self.started


class UploadTester(ThroughputTester):
    """Upload tester; payloads are generated once per size and reused."""

    category = "upload"

    def __init__(self, *args, **kwargs) -> None:  # noqa: ANN002, ANN003
        super().__init__(*args, **kwargs)
        self._payloads: Dict[float, bytes] = {}

    def _payload(self, size_mb: float) -> bytes:
        if size_mb not in self._payloads:
            self._payloads[size_mb] = create_upload_payload(size_mb)
        return self._payloads[size_mb]

    async def measure_once(
        self,
        session: aiohttp.ClientSession,
        server: Server,
        size_mb: float,
    ) -> float:
        body = TimedBody(self._payload(size_mb), self._clock)

        try:
            async with session.post(
                server.upload_url,
                data=body.stream(),
                headers={"Content-Type": "application/octet-stream"},
            ) as resp:
                status = resp.status
                headers = resp.headers
                await resp.read()
        except (aiohttp.ClientError, OSError) as exc:
            raise TrialError(f"Upload transport error: {exc}") from exc

        if status == 429:
            self._report_rate_limit(headers, size_mb=size_mb)
            return 0.0
        if not 200 <= status < 300:
            raise TrialError(f"Upload request failed with status {status}", status=status)

        elapsed = body.elapsed
        if elapsed <= 0:
            self._emit("debug", "upload produced no usable timing", {"size_mb": size_mb})
            return 0.0

        speed = bytes_to_mbps(len(body.payload), elapsed)
        self._emit("debug", "trial", {"size_mb": size_mb, "bytes": len(body.payload),
                                      "elapsed_s": elapsed, "mbps": speed})
        return speed
