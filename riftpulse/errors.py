from __future__ import annotations

from typing import Optional


class RiftPulseError(Exception):
    """Base class for engine errors."""


class SkippableRecordError(RiftPulseError):
    """A single raw record could not be used; the batch carries on without it."""


class RateLimitExceeded(RiftPulseError):
    """Upstream admission denied.

    `retry_after` is the number of seconds until the quota window frees a slot.
    """

    def __init__(self, retry_after: float, message: Optional[str] = None) -> None:
        self.retry_after = max(0.0, float(retry_after))
        super().__init__(message or f"Rate limit reached, retry in {self.retry_after:.1f}s")


class UpstreamFailure(RiftPulseError):
    """The upstream call failed after admission; nothing was cached."""

    def __init__(self, key: str, message: Optional[str] = None) -> None:
        self.key = key
        super().__init__(message or f"Upstream fetch failed for {key}")


class AggregationInconsistency(RiftPulseError):
    """An aggregation invariant was violated; the run's numbers cannot be trusted."""
