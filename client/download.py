"""
Download speed test module.

Each trial fetches ``/download?size=<mb>`` and reads the body chunk by
chunk so the elapsed time spans real byte arrivals rather than one opaque
buffering call.  Aggregation across sizes lives in ``client.throughput``.
"""
from __future__ import annotations

import aiohttp

from .api import Server, format_size
from .constants import CHUNK_SIZE
from .errors import TrialError
from .stats import bytes_to_mbps
from .throughput import ThroughputResult, ThroughputTester

DownloadResult = ThroughputResult


class DownloadTester(ThroughputTester):
    """
    Sequential-by-size, concurrent-by-trial download tester.

    The clock starts immediately before the first body read and stops at the
    last chunk's arrival.  Rate limiting, error statuses, empty bodies and
    non-positive elapsed times all yield a ``0.0`` sample; transport errors
    raise :class:`TrialError`.
    """

    category = "download"

    async def measure_once(
        self,
        session: aiohttp.ClientSession,
        server: Server,
        size_mb: float,
    ) -> float:
        bytes_transferred = 0

        try:
            async with session.get(server.download_url, params={"size": format_size(size_mb)}) as resp:
                if resp.status == 429:
                    self._report_rate_limit(resp.headers, size_mb=size_mb)
                    return 0.0
                if not 200 <= resp.status < 300:
                    self._emit("warn", "download request failed", {"size_mb": size_mb, "status": resp.status})
                    return 0.0

                start = self._clock()
                last_chunk = start
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    if not chunk:
                        continue
                    last_chunk = self._clock()
                    bytes_transferred += len(chunk)

        except (aiohttp.ClientError, OSError) as exc:
            raise TrialError(f"Download transport error: {exc}") from exc

        elapsed = last_chunk - start
        if bytes_transferred == 0 or elapsed <= 0:
            self._emit("debug", "download produced no usable timing", {
                "size_mb": size_mb, "bytes": bytes_transferred, "elapsed_s": elapsed,
            })
            return 0.0

        speed = bytes_to_mbps(bytes_transferred, elapsed)
        self._emit("debug", "trial", {"size_mb": size_mb, "bytes": bytes_transferred,
                                      "elapsed_s": elapsed, "mbps": speed})
        return speed
