from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from .cache import UpstreamCache, make_key, ttl_for
from .config import get_api_key
from .errors import RateLimitExceeded


log = logging.getLogger(__name__)


def _base(host: str) -> str:
    return f"https://{host}.api.riotgames.com"


def match_key(match_id: str) -> str:
    return make_key("match", id=match_id)


@dataclass
class RiotClient:
    """Riot Web API client. Every request goes through the shared cache."""

    region: str
    platform: str
    api_key: str
    cache: UpstreamCache
    ttl_overrides: Dict[str, Any] = field(default_factory=dict)
    timeout: float = 15.0
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], cache: UpstreamCache) -> "RiotClient":
        key = get_api_key(cfg)
        if not key:
            raise RuntimeError("No Riot API key found; set RIOT_API_KEY or run auth")
        return cls(
            region=cfg["riot"]["region"],
            platform=cfg["riot"]["platform"],
            api_key=key,
            cache=cache,
            ttl_overrides=(cfg.get("cache", {}) or {}).get("ttl") or {},
        )

    def _headers(self) -> Dict[str, str]:
        return {"X-Riot-Token": self.api_key}

    def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = self.session.get(url, headers=self._headers(), params=params, timeout=self.timeout)
        if resp.status_code == 429:
            try:
                retry = float(resp.headers.get("Retry-After", "1"))
            except ValueError:
                retry = 1.0
            raise RateLimitExceeded(retry, f"Riot API rate limited, retry in {retry:.0f}s")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def _cached(self, kind: str, category: str, url: str, params: Optional[Dict[str, Any]] = None, **key_params: Any) -> Any:
        key = make_key(kind, **key_params)
        producer: Callable[[], Any] = lambda: self._request(url, params)
        return self.cache.fetch(key, ttl_for(category, self.ttl_overrides), producer)

    def verify_key(self) -> bool:
        """True unless the platform status endpoint rejects the key with 401/403."""
        url = f"{_base(self.platform)}/lol/status/v4/platform-data"

        def probe() -> bool:
            resp = self.session.get(url, headers=self._headers(), timeout=10)
            if resp.status_code in (401, 403):
                return False
            if resp.status_code == 429:
                # a throttled key is still a valid key
                return True
            resp.raise_for_status()
            return True

        return self.cache.fetch(make_key("status", platform=self.platform), ttl_for("live", self.ttl_overrides), probe)

    # Account V1
    def resolve_account(self, game_name: str, tag_line: str) -> Optional[Dict[str, Any]]:
        url = f"{_base(self.region)}/riot/account/v1/accounts/by-riot-id/{game_name}/{tag_line}"
        return self._cached("account", "player", url, name=game_name.lower(), tag=tag_line.lower())

    def account_by_puuid(self, puuid: str) -> Optional[Dict[str, Any]]:
        url = f"{_base(self.region)}/riot/account/v1/accounts/by-puuid/{puuid}"
        return self._cached("account", "player", url, puuid=puuid)

    # Match V5
    def match_ids_by_puuid(
        self, puuid: str, start: int = 0, count: int = 20, queue: Optional[int] = None, start_time: Optional[int] = None
    ) -> List[str]:
        url = f"{_base(self.region)}/lol/match/v5/matches/by-puuid/{puuid}/ids"
        params: Dict[str, Any] = {"start": start, "count": count}
        if queue is not None:
            params["queue"] = queue
        if start_time is not None:
            params["startTime"] = start_time
        ids = self._cached(
            "match_ids", "match_ids", url, params, puuid=puuid, start=start, count=count, queue=queue, since=start_time
        )
        return list(ids or [])

    def get_match(self, match_id: str) -> Optional[Dict[str, Any]]:
        url = f"{_base(self.region)}/lol/match/v5/matches/{match_id}"
        return self.cache.fetch(match_key(match_id), ttl_for("match", self.ttl_overrides), lambda: self._request(url))

    # Champion Mastery V4
    def champion_masteries_by_puuid(self, puuid: str) -> List[Dict[str, Any]]:
        url = f"{_base(self.platform)}/lol/champion-mastery/v4/champion-masteries/by-puuid/{puuid}"
        return list(self._cached("mastery", "player", url, puuid=puuid) or [])

    # League V4
    def league_entries_by_puuid(self, puuid: str) -> List[Dict[str, Any]]:
        url = f"{_base(self.platform)}/lol/league/v4/entries/by-puuid/{puuid}"
        return list(self._cached("league", "player", url, puuid=puuid) or [])

    # Spectator V5
    def active_game(self, puuid: str) -> Optional[Dict[str, Any]]:
        url = f"{_base(self.platform)}/lol/spectator/v5/active-games/by-summoner/{puuid}"
        return self._cached("live", "live", url, puuid=puuid)
