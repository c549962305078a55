"""
Measurement orchestration.

One *cycle* runs the download, upload and ping aggregators (together by
default) and yields one point.  A *series* repeats cycles a fixed number of
times, strictly one after another, and keeps running averages for display:
mean for throughput, median for latency.
"""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, List, Optional

import aiohttp

from .api import Server
from .constants import PING_PRECISION, SAMPLE_COUNT, ZERO_RESULT_BACKOFF
from .download import DownloadTester
from .events import EventObserver, default_observer
from .latency import LatencyTester, PingResult
from .stats import average, median, round_half_up
from .throughput import ThroughputResult
from .upload import UploadTester


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SpeedResults:
    """The three aggregates of one cycle."""

    download: ThroughputResult
    upload: ThroughputResult
    ping: PingResult

    @property
    def all_zero(self) -> bool:
        return (
            self.download.speed_mbps <= 0
            and self.upload.speed_mbps <= 0
            and self.ping.latency_ms <= 0
        )

    def to_dict(self) -> dict:
        return {
            "download": self.download.speed_mbps,
            "upload": self.upload.speed_mbps,
            "ping": self.ping.latency_ms,
        }

    def details(self) -> dict:
        return {
            "download": self.download.to_dict(),
            "upload": self.upload.to_dict(),
            "ping": self.ping.to_dict(),
        }


@dataclass
class CycleResult:
    """One series point."""

    index: int
    download: int = 0
    upload: int = 0
    ping: float = 0.0
    skipped: bool = False

    @classmethod
    def from_results(cls, index: int, results: SpeedResults) -> CycleResult:
        return cls(
            index=index,
            download=results.download.speed_mbps,
            upload=results.upload.speed_mbps,
            ping=results.ping.latency_ms,
            skipped=results.all_zero,
        )

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "download": self.download,
            "upload": self.upload,
            "ping": self.ping,
            "skipped": self.skipped,
        }


class MeasurementSeries:
    """Bounded history of cycle points with running summaries.

    Zero values are left out of the summaries so a throttled cycle does not
    drag the averages down.
    """

    def __init__(self, max_points: int = SAMPLE_COUNT) -> None:
        self.points: Deque[CycleResult] = deque(maxlen=max_points)

    def append(self, point: CycleResult) -> None:
        self.points.append(point)

    def clear(self) -> None:
        self.points.clear()

    def __len__(self) -> int:
        return len(self.points)

    # -- Per-metric series --------------------------------------------------

    @property
    def download_values(self) -> List[int]:
        return [p.download for p in self.points if p.download > 0]

    @property
    def upload_values(self) -> List[int]:
        return [p.upload for p in self.points if p.upload > 0]

    @property
    def ping_values(self) -> List[float]:
        return [p.ping for p in self.points if p.ping > 0]

    # -- Running summaries --------------------------------------------------

    @property
    def download_average(self) -> int:
        return int(round_half_up(average(self.download_values)))

    @property
    def upload_average(self) -> int:
        return int(round_half_up(average(self.upload_values)))

    @property
    def ping_median(self) -> float:
        return round_half_up(median(self.ping_values), PING_PRECISION)

    @property
    def skipped_cycles(self) -> List[int]:
        return [p.index for p in self.points if p.skipped]

    def summary(self) -> dict:
        return {
            "download": self.download_average,
            "upload": self.upload_average,
            "ping": self.ping_median,
            "cycles": len(self.points),
            "skipped_cycles": self.skipped_cycles,
        }


PointCallback = Callable[[CycleResult, MeasurementSeries], None]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class SpeedtestRunner:
    """Run cycles and series against one server over one shared session."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        server: Server,
        download: Optional[DownloadTester] = None,
        upload: Optional[UploadTester] = None,
        latency: Optional[LatencyTester] = None,
        concurrent: bool = True,
        zero_backoff: float = ZERO_RESULT_BACKOFF,
        observer: Optional[EventObserver] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.server = server
        self.observer = observer or default_observer()
        self.download = download or DownloadTester(observer=self.observer)
        self.upload = upload or UploadTester(observer=self.observer)
        self.latency = latency or LatencyTester(observer=self.observer)
        self.concurrent = concurrent
        self.zero_backoff = zero_backoff
        self._sleep = sleep
        self.last_results: Optional[SpeedResults] = None

    async def measure_cycle(self) -> SpeedResults:
        """Run the three aggregators once.  Non-trial errors propagate."""
        if self.concurrent:
            download, upload, ping = await asyncio.gather(
                self.download.test(self.session, self.server),
                self.upload.test(self.session, self.server),
                self.latency.test(self.session, self.server),
            )
        else:
            download = await self.download.test(self.session, self.server)
            upload = await self.upload.test(self.session, self.server)
            ping = await self.latency.test(self.session, self.server)
        return SpeedResults(download=download, upload=upload, ping=ping)

    async def run_series(
        self,
        cycles: int = SAMPLE_COUNT,
        on_point: Optional[PointCallback] = None,
    ) -> MeasurementSeries:
        """Run *cycles* cycles into a fresh series, reporting each point."""
        series = MeasurementSeries(max_points=cycles)

        for idx in range(cycles):
            results = await self.measure_cycle()
            self.last_results = results
            point = CycleResult.from_results(idx, results)
            series.append(point)

            if on_point:
                on_point(point, series)

            if point.skipped:
                self.observer.on_event(
                    "warn", "series",
                    f"cycle {idx + 1} returned only zeros, possible rate limit",
                    {"backoff_s": self.zero_backoff},
                )
                if idx < cycles - 1:
                    await self._sleep(self.zero_backoff)

        self.observer.on_event("info", "series", "complete", series.summary())
        return series
