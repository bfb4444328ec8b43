import threading

import pytest

from riftpulse.ratelimit import PERSONAL, PRODUCTION, QuotaProfile, RateLimiter, profile_for


def test_two_per_second_window(clock):
    rl = RateLimiter(QuotaProfile("test", 2, 1.0), clock=clock)
    start = clock.now

    assert rl.can_admit()
    rl.record_request()
    clock.advance(0.05)
    assert rl.can_admit()
    rl.record_request()
    clock.advance(0.05)
    assert rl.can_admit() is False
    assert rl.time_until_next_slot() == pytest.approx(0.9)

    clock.now = start + 0.99
    assert rl.can_admit() is False
    clock.now = start + 1.0
    assert rl.can_admit() is True


def test_never_exceeds_quota_in_any_window(clock):
    rl = RateLimiter(QuotaProfile("test", 3, 10.0), clock=clock)
    admitted = []
    steps = [0.5, 0.1, 2.0, 0.0, 3.3, 1.2, 0.4, 4.0, 0.0, 0.1, 6.5, 0.2, 9.9, 0.3, 0.0, 1.1] * 4
    for step in steps:
        clock.advance(step)
        if rl.acquire():
            admitted.append(clock.now)
    assert admitted
    for i, t in enumerate(admitted):
        in_window = [u for u in admitted[i:] if u - t < 10.0]
        assert len(in_window) <= 3


def test_time_until_next_slot_is_zero_when_free(clock):
    rl = RateLimiter(QuotaProfile("test", 5, 60.0), clock=clock)
    assert rl.time_until_next_slot() == 0.0
    rl.record_request()
    assert rl.time_until_next_slot() == 0.0
    assert rl.remaining() == 4


def test_status_reports_profile_and_budget(clock):
    rl = RateLimiter(PERSONAL, clock=clock)
    for _ in range(3):
        assert rl.acquire()
    st = rl.status()
    assert st["profile"] == "personal"
    assert st["max_requests"] == 100
    assert st["window_s"] == 120.0
    assert st["remaining"] == 97
    assert st["retry_after"] == 0.0


def test_profile_lookup():
    assert profile_for(None) is PERSONAL
    assert profile_for("Production") is PRODUCTION
    assert PRODUCTION.max_requests == 20000 and PRODUCTION.window_s == 600.0
    with pytest.raises(ValueError):
        profile_for("unlimited")


def test_concurrent_acquire_admits_exactly_quota():
    rl = RateLimiter(QuotaProfile("test", 50, 600.0))
    results = []
    lock = threading.Lock()

    def worker():
        local = [rl.acquire() for _ in range(10)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 50
    assert rl.remaining() == 0
