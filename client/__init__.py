"""Speedtest client library -- HTTP measurement, aggregation, and statistics."""

__version__ = "1.3.0"

from .api import RateLimitInfo, Server, SpeedtestAPI
from .download import DownloadResult, DownloadTester
from .errors import TrialError, TrialTimeout
from .events import EventLog, EventObserver, LoggingObserver
from .latency import LatencyTester, PingResult
from .runner import CycleResult, MeasurementSeries, SpeedResults, SpeedtestRunner
from .stats import (
    average,
    average_without_cold_start,
    bytes_to_mbps,
    calculate_jitter,
    format_latency,
    format_speed,
    median,
    remove_outliers,
)
from .throughput import SizeBucket, ThroughputResult
from .upload import UploadResult, UploadTester

__all__ = [
    "CycleResult",
    "DownloadResult",
    "DownloadTester",
    "EventLog",
    "EventObserver",
    "LatencyTester",
    "LoggingObserver",
    "MeasurementSeries",
    "PingResult",
    "RateLimitInfo",
    "Server",
    "SizeBucket",
    "SpeedResults",
    "SpeedtestAPI",
    "SpeedtestRunner",
    "ThroughputResult",
    "TrialError",
    "TrialTimeout",
    "UploadResult",
    "UploadTester",
    "average",
    "average_without_cold_start",
    "bytes_to_mbps",
    "calculate_jitter",
    "format_latency",
    "format_speed",
    "median",
    "remove_outliers",
]
