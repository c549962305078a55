"""
HTTP latency measurement.

Each attempt sends ``HEAD /ping`` and times request issue to response
headers.  Attempts run one after another so they never queue behind each
other on the connection pool.

Aggregation::

    1. Drop failed and zero (rate-limited) attempts.
    2. With more than two samples left, drop the first and the last one
       *in recorded order* (not the smallest and largest).
    3. IQR outlier filter.
    4. Median, rounded to one decimal.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional

import aiohttp

from .api import Server
from .constants import PING_ATTEMPTS, PING_PRECISION, TRIAL_TIMEOUT
from .errors import TrialError
from .events import EventObserver
from .stats import calculate_jitter, median, remove_outliers, round_half_up
from .trial import Clock, TrialRunner


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class PingResult:
    """Aggregate latency for one cycle."""

    latency_ms: float = 0.0
    jitter_ms: float = 0.0
    samples: List[float] = field(default_factory=list)
    trimmed: List[float] = field(default_factory=list)
    failures: int = 0
    zero_samples: int = 0

    def add(self, sample: Optional[float]) -> None:
        if sample is None:
            self.failures += 1
        elif sample <= 0:
            self.zero_samples += 1
        else:
            self.samples.append(sample)

    def calculate(self) -> None:
        self.trimmed = self.samples[1:-1] if len(self.samples) > 2 else list(self.samples)
        self.latency_ms = round_half_up(median(remove_outliers(self.trimmed)), PING_PRECISION)
        self.jitter_ms = calculate_jitter(self.samples)

    def to_dict(self) -> dict:
        return {
            "latency_ms": self.latency_ms,
            "jitter_ms": round(self.jitter_ms, 3),
            "samples": [round(s, 1) for s in self.samples],
            "failures": self.failures,
            "zero_samples": self.zero_samples,
        }


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class LatencyTester(TrialRunner):
    """Round-trip latency against the server's ``/ping`` endpoint."""

    category = "ping"

    def __init__(
        self,
        attempts: int = PING_ATTEMPTS,
        trial_timeout: float = TRIAL_TIMEOUT,
        observer: Optional[EventObserver] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        super().__init__(trial_timeout=trial_timeout, observer=observer, clock=clock)
        self.attempts = attempts

    async def measure_once(self, session: aiohttp.ClientSession, server: Server) -> float:
        """Latency of one ``HEAD /ping`` in milliseconds (``0.0`` when throttled)."""
        start = self._clock()
        try:
            async with session.head(server.ping_url, allow_redirects=False) as resp:
                received = self._clock()
                status = resp.status
                headers = resp.headers
        except (aiohttp.ClientError, OSError) as exc:
            raise TrialError(f"Ping transport error: {exc}") from exc

        if status == 429:
            self._report_rate_limit(headers)
            return 0.0
        if not 200 <= status < 300:
            raise TrialError(f"Ping request failed with status {status}", status=status)

        return (received - start) * 1000

    async def test(self, session: aiohttp.ClientSession, server: Server) -> PingResult:
        result = PingResult()

        for attempt in range(self.attempts):
            sample = await self._guarded(self.measure_once(session, server), attempt=attempt)
            result.add(sample)
            self._progress((attempt + 1) / self.attempts, sample or 0.0)

        result.calculate()
        self._emit("info", "aggregate", {
            "latency_ms": result.latency_ms,
            "samples": len(result.samples),
            "failures": result.failures,
        })
        return result
