"""
Network measurement statistics.

Pure functions -- no I/O, no side effects, no mutation of the caller's
sequences.  Every function is total: an empty input yields ``0.0`` (or an
empty list) because failed trials routinely shrink sample sets to nothing.
"""
from __future__ import annotations

import math
import statistics
from typing import List, Sequence

from .constants import BYTES_PER_MB


# ---------------------------------------------------------------------------
# Central tendency
# ---------------------------------------------------------------------------

def average(values: Sequence[float]) -> float:
    """Arithmetic mean, ``0.0`` for an empty sequence."""
    if not values:
        return 0.0
    return statistics.mean(values)


def median(values: Sequence[float]) -> float:
    """Median of a sorted copy; mean of the two central values for even length."""
    if not values:
        return 0.0
    return statistics.median(values)


def average_without_cold_start(values: Sequence[float], drop_count: int = 1) -> float:
    """
    Mean after dropping the first *drop_count* values.

    At least one value always survives, so a single-sample bucket still
    reports that sample.
    """
    if not values:
        return 0.0
    start = max(0, min(drop_count, len(values) - 1))
    return average(values[start:])


# ---------------------------------------------------------------------------
# Outlier filtering
# ---------------------------------------------------------------------------

def remove_outliers(values: Sequence[float]) -> List[float]:
    """
    Drop values outside ``[Q1 - 1.5*IQR, Q3 + 1.5*IQR]``.

    Quartiles are read straight from the sorted copy at ``n // 4`` and
    ``3n // 4`` (no interpolation).  The filter runs over the original
    order, so survivors keep their input positions.  Two or fewer values
    carry no spread information and are returned unchanged.
    """
    if len(values) <= 2:
        return list(values)

    ordered = sorted(values)
    n = len(ordered)
    q1 = ordered[n // 4]
    q3 = ordered[(3 * n) // 4]
    iqr = q3 - q1

    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    return [v for v in values if lower <= v <= upper]


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def bytes_to_mbps(bytes_transferred: float, duration_seconds: float) -> float:
    """Throughput in Mbit/s (binary megabits), ``0.0`` for non-positive input."""
    if duration_seconds <= 0 or bytes_transferred <= 0:
        return 0.0
    megabits = (bytes_transferred * 8) / BYTES_PER_MB
    return megabits / duration_seconds


def megabytes_to_bytes(size_mb: float) -> int:
    return int(round(size_mb * BYTES_PER_MB))


def calculate_jitter(samples: Sequence[float]) -> float:
    """Mean absolute difference between consecutive samples."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return average(diffs)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (``2.5 -> 3``)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
