from typing import Any, Dict, List, Optional

import pytest

from riftpulse.errors import RateLimitExceeded
from riftpulse.normalize import MatchRecord, normalize_match


# 2024-03-01T12:00:00Z
BASE_TS = 1709294400000
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.slept: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def raw_match(
    match_id: str = "NA1_1",
    puuid: str = "me",
    kills: int = 0,
    deaths: int = 0,
    assists: int = 0,
    win: bool = True,
    champion_id: int = 103,
    champion_name: Optional[str] = "Ahri",
    creation_ms: int = BASE_TS,
    duration_s: int = 1800,
    position: str = "MIDDLE",
    **me_extra: Any,
) -> Dict[str, Any]:
    me = {
        "puuid": puuid,
        "teamId": 100,
        "win": win,
        "kills": kills,
        "deaths": deaths,
        "assists": assists,
        "championId": champion_id,
        "teamPosition": position,
        "totalDamageDealtToChampions": 20000,
        "goldEarned": 12000,
        "totalMinionsKilled": 180,
        "neutralMinionsKilled": 30,
        "visionScore": 25,
    }
    if champion_name is not None:
        me["championName"] = champion_name
    me.update(me_extra)
    mate = {
        "puuid": "mate",
        "teamId": 100,
        "win": win,
        "kills": 10,
        "deaths": 5,
        "assists": 8,
        "championId": 64,
        "totalDamageDealtToChampions": 30000,
        "goldEarned": 13000,
    }
    foe = {
        "puuid": "foe",
        "teamId": 200,
        "win": not win,
        "kills": 7,
        "deaths": 9,
        "assists": 4,
        "championId": 238,
        "totalDamageDealtToChampions": 25000,
        "goldEarned": 11000,
    }
    return {
        "metadata": {"matchId": match_id},
        "info": {
            "gameCreation": creation_ms,
            "gameDuration": duration_s,
            "gameEndTimestamp": creation_ms + duration_s * 1000,
            "queueId": 420,
            "participants": [me, mate, foe],
        },
    }


@pytest.fixture
def make_raw():
    return raw_match


@pytest.fixture
def make_record():
    counter = {"n": 0}

    def build(**kwargs: Any) -> MatchRecord:
        counter["n"] += 1
        kwargs.setdefault("match_id", f"NA1_{counter['n']}")
        rec = normalize_match(raw_match(**kwargs), kwargs.get("puuid", "me"))
        assert rec is not None
        return rec

    return build


class StubClient:
    """RiotClient stand-in with one Ahri match; `limited` rate limits the first-stage calls."""

    def __init__(self, limited: bool = False) -> None:
        self.limited = limited

    def _gate(self) -> None:
        if self.limited:
            raise RateLimitExceeded(2.4)

    def champion_masteries_by_puuid(self, puuid):
        self._gate()
        return []

    def match_ids_by_puuid(self, puuid, start=0, count=20, queue=None, start_time=None):
        self._gate()
        return ["NA1_1"]

    def league_entries_by_puuid(self, puuid):
        self._gate()
        return []

    def get_match(self, match_id):
        return raw_match(match_id, kills=4, deaths=2, assists=6, creation_ms=BASE_TS)

    def resolve_account(self, game_name, tag_line):
        return {"puuid": "me"} if game_name == "Known" else None

    def active_game(self, puuid):
        return None
