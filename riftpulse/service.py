from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from dateutil import parser as dateparser

from .aggregate import ChampionStats, aggregate
from .cache import UpstreamCache
from .champions import merged_table
from .config import get_config, merge_defaults
from .ddragon import champion_table
from .errors import RateLimitExceeded, UpstreamFailure
from .insights import ComparisonMetric, InsightConfig, Insights, compare, generate_insights
from .normalize import (
    MasteryRecord,
    MatchRecord,
    RankEntry,
    normalize_mastery,
    normalize_matches,
    normalize_rank_entries,
    rank_for_queue,
)
from .ratelimit import RateLimiter, profile_for
from .riot import RiotClient, match_key
from .trends import TrendPoint


log = logging.getLogger(__name__)


def parse_since(since: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    """Epoch seconds for "7d" style offsets or any date dateutil can parse."""
    if not since:
        return None
    s = since.strip().lower()
    now = now or datetime.now(timezone.utc)
    if s.endswith("d") and s[:-1].isdigit():
        return int((now - timedelta(days=int(s[:-1]))).timestamp())
    try:
        dt = dateparser.parse(s)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"cannot parse since value {since!r}") from e
    if not dt.tzinfo:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


@dataclass
class PlayerReport:
    puuid: str
    champions: List[ChampionStats]
    trends: List[TrendPoint]
    insights: Insights
    comparison: List[ComparisonMetric]
    ranks: List[RankEntry]
    reference_tier: str
    partial: bool = False
    unavailable: List[str] = field(default_factory=list)
    skipped_records: int = 0
    retry_after: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "puuid": self.puuid,
            "champions": [c.to_dict() for c in self.champions],
            "trends": [p.to_dict() for p in self.trends],
            "insights": self.insights.to_dict(),
            "comparison": [asdict(m) for m in self.comparison],
            "ranks": [asdict(r) for r in self.ranks],
            "reference_tier": self.reference_tier,
            "partial": self.partial,
            "unavailable": list(self.unavailable),
            "skipped_records": self.skipped_records,
            "retry_after": self.retry_after,
        }


class _Gaps:
    """Collects what could not be fetched during one report build."""

    def __init__(self) -> None:
        self.unavailable: List[str] = []
        self.retry_after: Optional[float] = None
        self.rate_limited = 0

    def note(self, what: str, exc: Exception) -> None:
        self.unavailable.append(what)
        if isinstance(exc, RateLimitExceeded):
            self.rate_limited += 1
            ra = exc.retry_after
            self.retry_after = ra if self.retry_after is None else max(self.retry_after, ra)
        log.warning("%s unavailable: %s", what, exc)


class PlayerService:
    """Owns the limiter, cache and client for one process and builds reports."""

    def __init__(
        self,
        cfg: Dict[str, Any],
        limiter: RateLimiter,
        cache: UpstreamCache,
        client: RiotClient,
        insight_config: Optional[InsightConfig] = None,
    ) -> None:
        self.cfg = merge_defaults(cfg)
        self.limiter = limiter
        self.cache = cache
        self.client = client
        self.insight_config = insight_config or InsightConfig.from_config(self.cfg)

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None) -> "PlayerService":
        cfg = merge_defaults(cfg or get_config())
        limiter = RateLimiter(profile_for(cfg.get("quota", {}).get("profile")))
        cache = UpstreamCache.from_config(cfg, limiter)
        client = RiotClient.from_config(cfg, cache)
        return cls(cfg, limiter, cache, client)

    @property
    def max_workers(self) -> int:
        return max(1, int(self.cfg["fetch"]["max_workers"]))

    def resolve_riot_id(self, riot_id: str) -> Optional[str]:
        if "#" not in riot_id:
            raise ValueError("Riot ID must look like GameName#TAG")
        game, tag = riot_id.split("#", 1)
        acct = self.client.resolve_account(game.strip(), tag.strip())
        return (acct or {}).get("puuid")

    def champion_names(self) -> Dict[int, str]:
        if self.cfg["fetch"].get("champion_names") != "ddragon":
            return merged_table(None)
        try:
            return merged_table(champion_table(self.cache, self.cfg["cache"].get("ttl")))
        except (RateLimitExceeded, UpstreamFailure) as e:
            log.info("using built-in champion table: %s", e)
            return merged_table(None)

    def _fetch_matches(self, ids: List[str], gaps: _Gaps) -> List[Dict[str, Any]]:
        if not ids:
            return []
        # cached matches are free; the rest must fit in the remaining quota
        budget = self.limiter.remaining()
        batch: List[str] = []
        deferred = 0
        for match_id in ids:
            if self.cache.has(match_key(match_id)):
                batch.append(match_id)
            elif budget > 0:
                batch.append(match_id)
                budget -= 1
            else:
                deferred += 1
        workers = max(1, min(self.max_workers, len(batch)))

        def one(match_id: str) -> Tuple[str, Any, Optional[Exception]]:
            try:
                return match_id, self.client.get_match(match_id), None
            except (RateLimitExceeded, UpstreamFailure) as e:
                return match_id, None, e

        raws: List[Dict[str, Any]] = []
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for match_id, raw, err in pool.map(one, batch):
                if err is not None:
                    gaps.note(f"match:{match_id}", err)
                elif raw is None:
                    log.debug("match %s not found upstream", match_id)
                else:
                    raws.append(raw)
        if deferred:
            retry = self.limiter.time_until_next_slot()
            gaps.note("match:quota", RateLimitExceeded(retry, f"{deferred} matches left for the next quota window"))
        return raws

    def build_report(
        self,
        puuid: str,
        count: Optional[int] = None,
        tier: Optional[str] = None,
        since: Optional[int] = None,
        queue: Optional[int] = None,
    ) -> PlayerReport:
        """Fetch, normalize and analyse a player's recent games (`since` in epoch seconds).

        Fetch failures degrade the report to `partial`. If every upstream call
        was rate limited there is nothing to show and RateLimitExceeded is raised.
        """
        count = int(count or self.cfg["fetch"]["match_count"])
        gaps = _Gaps()
        names = self.champion_names()

        first_stage: Dict[str, Callable[[], Any]] = {
            "mastery": lambda: self.client.champion_masteries_by_puuid(puuid),
            "match_ids": lambda: self.client.match_ids_by_puuid(puuid, count=count, queue=queue, start_time=since),
            "ranks": lambda: self.client.league_entries_by_puuid(puuid),
        }
        results: Dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=len(first_stage)) as pool:
            futures = {name: pool.submit(fn) for name, fn in first_stage.items()}
            for name, fut in futures.items():
                try:
                    results[name] = fut.result()
                except (RateLimitExceeded, UpstreamFailure) as e:
                    gaps.note(name, e)
                    results[name] = []

        if gaps.rate_limited == len(first_stage):
            raise RateLimitExceeded(gaps.retry_after or 0.0)

        raws = self._fetch_matches(list(results["match_ids"]), gaps)
        records, skipped = normalize_matches(raws, puuid, names)
        mastery = normalize_mastery(results["mastery"], names)
        ranks = normalize_rank_entries(results["ranks"])
        return self.analyse(puuid, records, mastery, ranks, tier=tier, gaps=gaps, skipped=skipped)

    def analyse(
        self,
        puuid: str,
        records: List[MatchRecord],
        mastery: List[MasteryRecord],
        ranks: Optional[List[RankEntry]] = None,
        tier: Optional[str] = None,
        gaps: Optional[_Gaps] = None,
        skipped: int = 0,
    ) -> PlayerReport:
        ranks = ranks or []
        gaps = gaps or _Gaps()
        cfg = self.insight_config
        champions = aggregate(records, mastery)
        insights = generate_insights(puuid, records, mastery, cfg, champions=champions)
        reference = self.reference_tier(ranks, tier)
        return PlayerReport(
            puuid=puuid,
            champions=champions,
            trends=insights.trend_series,
            insights=insights,
            comparison=compare(insights.overall, reference, cfg),
            ranks=ranks,
            reference_tier=reference,
            partial=bool(gaps.unavailable),
            unavailable=gaps.unavailable,
            skipped_records=skipped,
            retry_after=gaps.retry_after,
        )

    def reference_tier(self, ranks: List[RankEntry], tier: Optional[str] = None) -> str:
        if tier:
            return tier.strip().lower()
        solo = rank_for_queue(ranks)
        if solo and solo.tier.lower() in self.insight_config.benchmarks:
            return solo.tier.lower()
        return self.insight_config.default_tier

    def live_game(self, puuid: str) -> Optional[Dict[str, Any]]:
        return self.client.active_game(puuid)

    def invalidate_player(self, puuid: str) -> int:
        n = self.cache.invalidate(puuid)
        log.info("dropped %d cached entries for %s", n, puuid)
        return n

    def status(self) -> Dict[str, Any]:
        return {"limiter": self.limiter.status(), "cache": self.cache.stats()}

