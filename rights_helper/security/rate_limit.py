"""In-memory per-user question rate limiting."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable


class RateLimitExceeded(RuntimeError):
    """Raised when a user sends more questions than the window allows."""

    def __init__(self, message: str, retry_after_sec: float) -> None:
        super().__init__(message)
        self.retry_after_sec = retry_after_sec


@dataclass(frozen=True)
class LimitPolicy:
    max_events: int
    window_sec: int

    @classmethod
    def per_minute(cls, max_events: int) -> "LimitPolicy":
        return cls(max_events=max_events, window_sec=60)


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._events: dict[tuple[int, str], deque[float]] = defaultdict(deque)

    def check(self, user_id: int, channel: str, policy: LimitPolicy) -> None:
        now = self._clock()
        q = self._events[(user_id, channel)]

        while q and now - q[0] > policy.window_sec:
            q.popleft()

        if len(q) >= policy.max_events:
            retry_after = max(0.0, policy.window_sec - (now - q[0]))
            raise RateLimitExceeded(
                f"rate limit exceeded for user={user_id}, channel={channel}",
                retry_after_sec=retry_after,
            )

        q.append(now)
