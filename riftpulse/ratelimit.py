from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict


@dataclass(frozen=True)
class QuotaProfile:
    name: str
    max_requests: int
    window_s: float


# Riot key tiers
PERSONAL = QuotaProfile("personal", max_requests=100, window_s=120.0)
PRODUCTION = QuotaProfile("production", max_requests=20000, window_s=600.0)

PROFILES: Dict[str, QuotaProfile] = {p.name: p for p in (PERSONAL, PRODUCTION)}


def profile_for(name: str | None) -> QuotaProfile:
    if not name:
        return PERSONAL
    try:
        return PROFILES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown quota profile {name!r}; expected one of {sorted(PROFILES)}") from None


class RateLimiter:
    """Sliding-window gate for upstream requests.

    Keeps a log of admission timestamps for the trailing window. The log is the
    only shared mutable state; every read and write goes through `_lock`.
    """

    def __init__(self, profile: QuotaProfile = PERSONAL, clock: Callable[[], float] = time.monotonic) -> None:
        self.profile = profile
        self._clock = clock
        self._log: Deque[float] = deque()
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self.profile.max_requests

    @property
    def window_s(self) -> float:
        return self.profile.window_s

    def _prune(self, now: float) -> None:
        while self._log and now - self._log[0] >= self.window_s:
            self._log.popleft()

    def can_admit(self) -> bool:
        with self._lock:
            self._prune(self._clock())
            return len(self._log) < self.max_requests

    def record_request(self) -> None:
        with self._lock:
            self._log.append(self._clock())

    def acquire(self) -> bool:
        """Check and record in one step; False means the window is full."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._log) >= self.max_requests:
                return False
            self._log.append(now)
            return True

    def time_until_next_slot(self) -> float:
        with self._lock:
            now = self._clock()
            self._prune(now)
            excess = len(self._log) - self.max_requests
            if excess < 0 or not self._log:
                return 0.0
            # the (excess+1)-th oldest entry has to leave the window
            return max(0.0, self._log[excess] + self.window_s - now)

    def remaining(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return max(0, self.max_requests - len(self._log))

    def status(self) -> Dict[str, Any]:
        return {
            "profile": self.profile.name,
            "max_requests": self.max_requests,
            "window_s": self.window_s,
            "remaining": self.remaining(),
            "retry_after": round(self.time_until_next_slot(), 3),
        }
