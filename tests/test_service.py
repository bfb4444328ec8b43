from datetime import datetime, timezone

import pytest

from conftest import BASE_TS, DAY_MS, raw_match

from riftpulse.cache import UpstreamCache
from riftpulse.config import merge_defaults
from riftpulse.errors import RateLimitExceeded, UpstreamFailure
from riftpulse.ratelimit import QuotaProfile, RateLimiter
from riftpulse.riot import match_key
from riftpulse.service import PlayerService, parse_since


class FakeClient:
    """Stands in for RiotClient; failures are keyed by call name or match id."""

    def __init__(self, matches, failures=None, ranks=None):
        self.matches = {m["metadata"]["matchId"]: m for m in matches}
        self.failures = failures or {}
        self.ranks = ranks or []
        self.calls = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        err = self.failures.get(name)
        if err is not None:
            raise err

    def champion_masteries_by_puuid(self, puuid):
        self._maybe_fail("mastery")
        return [{"championId": 103, "championPoints": 50000, "championLevel": 7}, {"championId": 1, "championPoints": 10}]

    def match_ids_by_puuid(self, puuid, start=0, count=20, queue=None, start_time=None):
        self._maybe_fail("match_ids")
        return list(self.matches)[:count]

    def league_entries_by_puuid(self, puuid):
        self._maybe_fail("ranks")
        return self.ranks

    def get_match(self, match_id):
        self._maybe_fail(match_id)
        return self.matches.get(match_id)

    def resolve_account(self, game_name, tag_line):
        if game_name == "Known":
            return {"puuid": "me"}
        return None

    def active_game(self, puuid):
        return None


def _service(client, **cfg_over):
    cfg = merge_defaults({"fetch": {"champion_names": "static", "max_workers": 4}, **cfg_over})
    limiter = RateLimiter(QuotaProfile("test", 100, 120.0))
    cache = UpstreamCache(limiter)
    return PlayerService(cfg, limiter, cache, client)


def _matches():
    return [
        raw_match("NA1_1", kills=5, deaths=1, assists=5, win=True, creation_ms=BASE_TS),
        raw_match("NA1_2", kills=2, deaths=5, assists=3, win=False, creation_ms=BASE_TS + DAY_MS),
        raw_match("NA1_3", champion_id=238, champion_name="Zed", kills=9, deaths=2, win=True, creation_ms=BASE_TS + 2 * DAY_MS),
    ]


def test_full_report():
    svc = _service(FakeClient(_matches()))
    rep = svc.build_report("me")
    assert rep.partial is False and rep.unavailable == []
    assert [c.champion_name for c in rep.champions] == ["Ahri", "Zed", "Annie"]
    assert rep.champions[0].games == 2
    assert rep.champions[0].mastery_points == 50000
    assert len(rep.trends) == 3
    assert rep.reference_tier == "gold"
    assert len(rep.comparison) == 5
    d = rep.to_dict()
    assert d["champions"][0]["champion_name"] == "Ahri"
    assert d["insights"]["games"] == 3


def test_failed_match_makes_report_partial():
    client = FakeClient(_matches(), failures={"NA1_2": UpstreamFailure("match:id=NA1_2")})
    rep = _service(client).build_report("me")
    assert rep.partial is True
    assert rep.unavailable == ["match:NA1_2"]
    assert rep.insights.games == 2


def test_rate_limited_mastery_is_reported_with_retry_after():
    client = FakeClient(_matches(), failures={"mastery": RateLimitExceeded(12)})
    rep = _service(client).build_report("me")
    assert rep.partial is True
    assert rep.unavailable == ["mastery"]
    assert rep.retry_after == 12
    assert [c.champion_name for c in rep.champions] == ["Ahri", "Zed"]


def test_everything_rate_limited_raises():
    failures = {name: RateLimitExceeded(30) for name in ("mastery", "match_ids", "ranks")}
    with pytest.raises(RateLimitExceeded) as ei:
        _service(FakeClient(_matches(), failures=failures)).build_report("me")
    assert ei.value.retry_after == 30


def test_malformed_matches_are_counted():
    matches = _matches() + [{"metadata": {"matchId": "NA1_4"}, "info": {}}]
    rep = _service(FakeClient(matches)).build_report("me")
    assert rep.skipped_records == 1
    assert rep.partial is False


def test_reference_tier_from_solo_rank():
    ranks = [{"queueType": "RANKED_SOLO_5x5", "tier": "PLATINUM", "rank": "IV", "wins": 10, "losses": 10}]
    svc = _service(FakeClient(_matches(), ranks=ranks))
    assert svc.build_report("me").reference_tier == "platinum"
    assert svc.build_report("me", tier="Silver").reference_tier == "silver"


def test_count_limits_match_ids():
    client = FakeClient(_matches())
    rep = _service(client).build_report("me", count=1)
    assert rep.insights.games == 1


def test_resolve_riot_id():
    svc = _service(FakeClient([]))
    assert svc.resolve_riot_id("Known#NA1") == "me"
    assert svc.resolve_riot_id("Nobody#NA1") is None
    with pytest.raises(ValueError):
        svc.resolve_riot_id("no-tag")


def test_invalidate_player_drops_cached_entries():
    svc = _service(FakeClient([]))
    svc.cache.put("mastery:puuid=me", [], 60)
    svc.cache.put("mastery:puuid=other", [], 60)
    assert svc.invalidate_player("me") == 1
    assert svc.cache.keys() == ["mastery:puuid=other"]


def test_parse_since():
    now = datetime(2024, 3, 10, tzinfo=timezone.utc)
    assert parse_since(None) is None
    assert parse_since("7d", now=now) == int(datetime(2024, 3, 3, tzinfo=timezone.utc).timestamp())
    assert parse_since("2024-01-01") == int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp())
    with pytest.raises(ValueError):
        parse_since("not a date")


def _tight_service(client, max_requests):
    cfg = merge_defaults({"fetch": {"champion_names": "static"}})
    limiter = RateLimiter(QuotaProfile("tight", max_requests, 120.0))
    return PlayerService(cfg, limiter, UpstreamCache(limiter), client)


def test_match_fetches_stay_within_remaining_quota():
    client = FakeClient(_matches())
    rep = _tight_service(client, 2).build_report("me")
    assert "NA1_3" not in client.calls
    assert rep.insights.games == 2
    assert rep.unavailable == ["match:quota"]
    assert rep.partial is True


def test_cached_matches_do_not_count_against_quota():
    matches = _matches()
    client = FakeClient(matches)
    svc = _tight_service(client, 2)
    svc.cache.put(match_key("NA1_3"), matches[2], 60)
    rep = svc.build_report("me")
    assert rep.unavailable == []
    assert rep.insights.games == 3
