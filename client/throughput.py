"""
Multi-size throughput aggregation shared by the download and upload testers.

For every payload size a handful of trials is run (gathered together by
default).  Failed and zero trials are dropped, each size is reduced to one
representative value (IQR filter, then cold-start-trimmed mean), and the
per-size values are reduced again (IQR filter, then mean) to one integer
Mbit/s figure.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import aiohttp

from .api import Server
from .constants import (
    COLD_START_SKIP,
    FILE_SIZES_MB,
    MEASUREMENTS_PER_SIZE,
    TRIAL_TIMEOUT,
)
from .events import EventObserver
from .stats import (
    average,
    average_without_cold_start,
    remove_outliers,
    round_half_up,
)
from .trial import Clock, TrialRunner


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SizeBucket:
    """Samples collected for one payload size."""

    size_mb: float
    samples: List[float] = field(default_factory=list)
    failures: int = 0
    zero_samples: int = 0
    value: float = 0.0

    def add(self, sample: Optional[float]) -> None:
        if sample is None:
            self.failures += 1
        elif sample <= 0:
            self.zero_samples += 1
        else:
            self.samples.append(sample)

    def calculate(self) -> None:
        self.value = average_without_cold_start(remove_outliers(self.samples), COLD_START_SKIP)

    def to_dict(self) -> dict:
        return {
            "size_mb": self.size_mb,
            "samples": [round(s, 2) for s in self.samples],
            "failures": self.failures,
            "zero_samples": self.zero_samples,
            "value": round(self.value, 2),
        }


@dataclass
class ThroughputResult:
    """Aggregate throughput for one metric in one cycle."""

    speed_mbps: int = 0
    buckets: List[SizeBucket] = field(default_factory=list)
    duration_ms: float = 0.0

    def calculate(self) -> None:
        per_size = [b.value for b in self.buckets if b.samples]
        self.speed_mbps = int(round_half_up(average(remove_outliers(per_size))))

    @property
    def samples(self) -> List[float]:
        return [s for b in self.buckets for s in b.samples]

    @property
    def failures(self) -> int:
        return sum(b.failures for b in self.buckets)

    def to_dict(self) -> dict:
        return {
            "speed_mbps": self.speed_mbps,
            "duration_ms": round(self.duration_ms, 2),
            "sizes": [b.to_dict() for b in self.buckets],
        }


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class ThroughputTester(TrialRunner):
    """
    Base class for download and upload testers.

    Subclasses implement :meth:`measure_once`; this class owns the size
    iteration, concurrency, and noise reduction.
    """

    category = "throughput"

    def __init__(
        self,
        sizes_mb: Sequence[float] = FILE_SIZES_MB,
        measurements_per_size: int = MEASUREMENTS_PER_SIZE,
        concurrent: bool = True,
        trial_timeout: float = TRIAL_TIMEOUT,
        observer: Optional[EventObserver] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        super().__init__(trial_timeout=trial_timeout, observer=observer, clock=clock)
        self.sizes_mb = tuple(sizes_mb)
        self.measurements_per_size = measurements_per_size
        self.concurrent = concurrent

    async def measure_once(
        self,
        session: aiohttp.ClientSession,
        server: Server,
        size_mb: float,
    ) -> float:
        raise NotImplementedError

    async def _measure_size(
        self,
        session: aiohttp.ClientSession,
        server: Server,
        size_mb: float,
    ) -> SizeBucket:
        bucket = SizeBucket(size_mb=size_mb)
        n = self.measurements_per_size

        if self.concurrent:
            outcomes = await asyncio.gather(*[
                self._guarded(self.measure_once(session, server, size_mb), size_mb=size_mb, attempt=i)
                for i in range(n)
            ])
        else:
            outcomes = []
            for i in range(n):
                outcomes.append(
                    await self._guarded(self.measure_once(session, server, size_mb), size_mb=size_mb, attempt=i)
                )

        for sample in outcomes:
            bucket.add(sample)
        bucket.calculate()

        if not bucket.samples:
            self._emit("warn", "no successful trials for size", {"size_mb": size_mb})
        return bucket

    async def test(self, session: aiohttp.ClientSession, server: Server) -> ThroughputResult:
        result = ThroughputResult()
        started = time.perf_counter()

        for idx, size_mb in enumerate(self.sizes_mb):
            bucket = await self._measure_size(session, server, size_mb)
            result.buckets.append(bucket)
            self._progress((idx + 1) / len(self.sizes_mb), bucket.value)

        result.duration_ms = (time.perf_counter() - started) * 1000
        result.calculate()

        self._emit("info", "aggregate", {
            "speed_mbps": result.speed_mbps,
            "per_size": [round(b.value, 2) for b in result.buckets],
            "failures": result.failures,
        })
        return result
