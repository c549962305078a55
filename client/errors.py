"""Trial-level failures.

Anything raised by a measurer that is *not* a :class:`TrialError` is a
programming error and must reach the caller untouched.
"""
from __future__ import annotations

from typing import Optional


class TrialError(Exception):
    """One timed transfer or probe failed (transport error, bad status)."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class TrialTimeout(TrialError):
    """A trial exceeded its time ceiling and was abandoned."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Trial timed out after {timeout:.1f} s")
        self.timeout = timeout
