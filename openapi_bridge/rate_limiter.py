"""Global sliding-window rate limiter for forwarded tool calls."""

from __future__ import annotations

import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int | None = None


class RateLimiter:
    """Admit at most ``max_requests`` calls in any ``window`` seconds."""

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.window:
            self._requests.popleft()

    def check(self) -> RateLimitDecision:
        """Record the call if under the limit, otherwise say when to retry."""
        now = self._clock()
        self._prune(now)

        if len(self._requests) < self.max_requests:
            self._requests.append(now)
            return RateLimitDecision(allowed=True)

        retry_after = math.ceil(self._requests[0] + self.window - now)
        return RateLimitDecision(allowed=False, retry_after=max(retry_after, 1))

    def stats(self) -> dict[str, float]:
        """Current usage within the window."""
        now = self._clock()
        self._prune(now)
        resets_in = self._requests[0] + self.window - now if self._requests else 0.0
        return {
            "current_requests": len(self._requests),
            "max_requests": self.max_requests,
            "window": self.window,
            "resets_in": math.ceil(resets_in),
        }

    def reset(self) -> None:
        self._requests.clear()
