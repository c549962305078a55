"""
Plumbing shared by every tester: event reporting, the per-trial timeout,
and the failure boundary that turns a :class:`TrialError` into a dropped
sample.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from .api import RateLimitInfo
from .constants import TRIAL_TIMEOUT
from .errors import TrialError, TrialTimeout
from .events import EventObserver, default_observer, summarise

Clock = Callable[[], float]


class TrialRunner:
    """Base class for the download, upload and latency testers."""

    category = "trial"

    def __init__(
        self,
        trial_timeout: float = TRIAL_TIMEOUT,
        observer: Optional[EventObserver] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.trial_timeout = trial_timeout
        self.observer = observer or default_observer()
        self._clock = clock
        self.on_progress: Optional[Callable[[float, float], None]] = None

    # -- Events -------------------------------------------------------------

    def _emit(self, level: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.observer.on_event(level, self.category, message, summarise(data) if data else None)

    def _report_rate_limit(self, headers, **context: Any) -> None:  # noqa: ANN001
        info = RateLimitInfo.from_headers(headers)
        self._emit("warn", "rate limited (429), recording zero sample", {**context, **info.to_dict()})

    def _progress(self, fraction: float, value: float) -> None:
        if self.on_progress:
            self.on_progress(min(fraction, 1.0), value)

    # -- Trial boundary -----------------------------------------------------

    async def _with_timeout(self, trial: Awaitable[float]) -> float:
        try:
            return await asyncio.wait_for(trial, timeout=self.trial_timeout)
        except asyncio.TimeoutError:
            raise TrialTimeout(self.trial_timeout) from None

    async def _guarded(self, trial: Awaitable[float], **context: Any) -> Optional[float]:
        """
        Run one trial under the timeout.

        Returns the sample, or ``None`` for a trial-level failure.  Any other
        exception is a bug and propagates.
        """
        try:
            return await self._with_timeout(trial)
        except TrialError as exc:
            self._emit("warn", "trial failed", {**context, "error": str(exc), "status": exc.status})
            return None
