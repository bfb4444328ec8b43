from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .cache import UpstreamCache, make_key, ttl_for


log = logging.getLogger(__name__)

BASE = "https://ddragon.leagueoflegends.com"


def _http() -> httpx.Client:
    return httpx.Client(timeout=10)


def latest_version() -> str:
    with _http() as h:
        r = h.get(f"{BASE}/api/versions.json")
        r.raise_for_status()
        versions = r.json()
    return versions[0]


def champion_json(ver: str, locale: str = "en_US") -> Dict[str, Any]:
    with _http() as h:
        r = h.get(f"{BASE}/cdn/{ver}/data/{locale}/champion.json")
        r.raise_for_status()
        return r.json()


def champion_table_from_json(data: Dict[str, Any]) -> Dict[int, str]:
    # map via 'key' -> 'id'
    out: Dict[int, str] = {}
    for obj in (data.get("data") or {}).values():
        try:
            out[int(obj.get("key"))] = obj.get("id")
        except (TypeError, ValueError):
            continue
    return out


def champion_table(cache: UpstreamCache, ttl_overrides: Optional[Dict[str, Any]] = None) -> Dict[int, str]:
    """Current champion id -> name table, held in the cache as static data."""
    ttl = ttl_for("static", ttl_overrides)

    def produce() -> Dict[int, str]:
        ver = latest_version()
        table = champion_table_from_json(champion_json(ver))
        log.info("loaded %d champions from ddragon %s", len(table), ver)
        return table

    return cache.fetch(make_key("ddragon", table="champion"), ttl, produce)
