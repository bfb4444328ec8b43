from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import RateLimitExceeded, UpstreamFailure
from .ratelimit import RateLimiter


log = logging.getLogger(__name__)


class CacheTTL:
    """Seconds each payload class stays fresh."""

    STATIC = 24 * 60 * 60  # champion/item tables
    PLAYER = 15 * 60  # account, rank, mastery
    MATCH = 60 * 60  # completed matches never change
    MATCH_IDS = 5 * 60  # match lists grow as the player plays
    LIVE = 30  # spectator


_CATEGORIES = {
    "static": CacheTTL.STATIC,
    "player": CacheTTL.PLAYER,
    "match": CacheTTL.MATCH,
    "match_ids": CacheTTL.MATCH_IDS,
    "live": CacheTTL.LIVE,
}


def ttl_for(category: str, overrides: Optional[Mapping[str, Any]] = None) -> float:
    if overrides and overrides.get(category) is not None:
        return float(overrides[category])
    try:
        return float(_CATEGORIES[category])
    except KeyError:
        raise ValueError(f"unknown TTL category {category!r}") from None


def make_key(kind: str, **params: Any) -> str:
    parts = "|".join(f"{k}={params[k]}" for k in sorted(params))
    return f"{kind}:{parts}"


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


POLICIES = ("fail_fast", "wait")


class UpstreamCache:
    """TTL cache in front of every upstream call.

    Hits never touch the rate limiter. Misses take a limiter slot, run the
    producer and store its result. Eviction at capacity drops the oldest
    inserted entry.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        max_entries: int = 100,
        policy: str = "fail_fast",
        max_wait_s: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if policy not in POLICIES:
            raise ValueError(f"unknown cache policy {policy!r}; expected one of {POLICIES}")
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.limiter = limiter
        self.max_entries = int(max_entries)
        self.policy = policy
        self.max_wait_s = float(max_wait_s)
        self._clock = clock
        self._sleep = sleep
        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], limiter: RateLimiter) -> "UpstreamCache":
        c = cfg.get("cache", {}) or {}
        return cls(
            limiter,
            max_entries=int(c.get("max_entries", 100)),
            policy=str(c.get("policy", "fail_fast")),
            max_wait_s=float(c.get("max_wait_s", 5.0)),
        )

    # -- plain store operations --

    def get(self, key: str) -> Any:
        entry = self._live_entry(key)
        return entry.value if entry else None

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._store[key]
                return None
            return entry

    def put(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            if key in self._store:
                del self._store[key]
            elif len(self._store) >= self.max_entries:
                oldest = next(iter(self._store))
                del self._store[oldest]
                log.debug("cache full, evicted %s", oldest)
            self._store[key] = CacheEntry(value=value, created_at=self._clock(), ttl=float(ttl))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def cleanup(self) -> int:
        with self._lock:
            now = self._clock()
            dead = [k for k, e in self._store.items() if e.expired(now)]
            for k in dead:
                del self._store[k]
        if dead:
            log.info("cache cleanup: removed %d expired entries", len(dead))
        return len(dead)

    def invalidate(self, fragment: str) -> int:
        """Drop every entry whose key contains `fragment` (e.g. a puuid)."""
        with self._lock:
            keys = [k for k in self._store if fragment in k]
            for k in keys:
                del self._store[k]
        return len(keys)

    def clear_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
        return len(keys)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            entries = [
                {"key": k, "age": round(now - e.created_at, 3), "ttl": e.ttl, "expired": e.expired(now)}
                for k, e in self._store.items()
            ]
            lookups = self._hits + self._misses
            return {
                "size": len(self._store),
                "max_size": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
                "entries": entries,
            }

    # -- upstream mediation --

    def fetch(self, key: str, ttl: float, producer: Callable[[], Any]) -> Any:
        entry = self._live_entry(key)
        if entry is not None:
            with self._lock:
                self._hits += 1
            log.debug("cache hit: %s", key)
            return entry.value
        with self._lock:
            self._misses += 1
        log.debug("cache miss: %s", key)

        self._admit(key)
        try:
            value = producer()
        except RateLimitExceeded:
            raise
        except Exception as exc:
            # the slot stays consumed
            log.warning("upstream fetch failed for %s: %s", key, exc)
            raise UpstreamFailure(key) from exc
        self.put(key, value, ttl)
        return value

    def _admit(self, key: str) -> None:
        waited = 0.0
        while not self.limiter.acquire():
            retry_after = self.limiter.time_until_next_slot()
            if self.policy == "fail_fast" or waited + retry_after > self.max_wait_s:
                log.warning("rate limit reached for %s, retry in %.1fs", key, retry_after)
                raise RateLimitExceeded(retry_after)
            # small floor so a zero hint cannot spin
            pause = max(retry_after, 0.01)
            self._sleep(pause)
            waited += pause

    # -- background sweep --

    def start_sweeper(self, interval_s: float = 300.0) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        th = threading.Thread(target=self._sweep_loop, args=(float(interval_s),), name="riftpulse-cache-sweeper", daemon=True)
        self._sweeper = th
        th.start()

    def stop_sweeper(self) -> None:
        self._stop.set()
        th = self._sweeper
        if th is not None:
            th.join(timeout=5)
        self._sweeper = None

    def _sweep_loop(self, interval_s: float) -> None:
        while not self._stop.wait(interval_s):
            self.cleanup()

    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._store)
