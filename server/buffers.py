"""
Reusable response buffers for the download endpoint.

Buffers are immutable ``bytes`` filled with ``b"x"``, so a pooled buffer is
indistinguishable from a freshly allocated one.
"""
from __future__ import annotations

from typing import Dict, List, Sequence

from client.stats import megabytes_to_bytes

DEFAULT_POOL_LIMIT = 10
SUPPORTED_SIZES_MB = (0.5, 1.0, 2.0, 5.0, 10.0)
FILL_BYTE = b"x"


class BufferPool:
    """Per-size free lists for the supported download sizes."""

    def __init__(
        self,
        limit_per_size: int = DEFAULT_POOL_LIMIT,
        sizes_mb: Sequence[float] = SUPPORTED_SIZES_MB,
    ) -> None:
        self.limit_per_size = limit_per_size
        self._pools: Dict[int, List[bytes]] = {megabytes_to_bytes(s): [] for s in sizes_mb}

    def get(self, size_bytes: int) -> bytes:
        """Reuse a pooled buffer when one is free, otherwise allocate."""
        pool = self._pools.get(size_bytes)
        if pool:
            return pool.pop()
        return FILL_BYTE * size_bytes

    def release(self, buffer: bytes) -> None:
        """Return *buffer*; unsupported sizes and full pools drop it."""
        pool = self._pools.get(len(buffer))
        if pool is None or len(pool) >= self.limit_per_size:
            return
        pool.append(buffer)

    def available(self, size_bytes: int) -> int:
        return len(self._pools.get(size_bytes, ()))
