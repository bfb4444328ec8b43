from __future__ import annotations

import logging
import operator
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .aggregate import ChampionStats, OverallStats, RoleStats, aggregate, overall_stats, role_stats
from .config import merge_defaults
from .normalize import UNKNOWN_ROLE, MasteryRecord, MatchRecord
from .trends import TrendPoint, calculate_trends, day_of, predict, record_performance, resolve_tz, trend_direction


log = logging.getLogger(__name__)

_OPS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

DIVISIONS = ("IV", "III", "II", "I")

# metric key -> display category, in output order
COMPARISON_CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("win_rate", "Win Rate"),
    ("kda", "KDA"),
    ("cs_per_min", "CS per Minute"),
    ("vision", "Vision Score"),
    ("damage_per_min", "Damage per Minute"),
)


@dataclass
class InsightConfig:
    min_games_strong: int = 5
    min_games_role: int = 3
    full_confidence_games: int = 20
    default_tier: str = "gold"
    overall_weights: Dict[str, float] = field(default_factory=dict)
    overall_targets: Dict[str, float] = field(default_factory=dict)
    rank_bands: List[Tuple[float, str, float]] = field(default_factory=list)
    rank_floor: Tuple[str, float] = ("Bronze", 0.7)
    rating_cuts: List[Tuple[float, str]] = field(default_factory=list)
    rating_floor: str = "poor"
    strengths: List[Tuple[str, str, float, str]] = field(default_factory=list)
    strengths_fallback: str = ""
    improvements: List[Tuple[str, str, float, str]] = field(default_factory=list)
    improvements_fallback: str = ""
    benchmarks: Dict[str, Dict[str, float]] = field(default_factory=dict)
    timezone: str = "UTC"
    window_points: int = 10
    stable_band_pct: float = 10.0
    horizon_days: int = 7

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None) -> "InsightConfig":
        cfg = merge_defaults(cfg or {})
        ins = cfg["insights"]
        tr = cfg["trends"]
        for rule in list(ins["strengths"]) + list(ins["improvements"]):
            if len(rule) != 4 or rule[1] not in _OPS:
                raise ValueError(f"bad insight rule {rule!r}")
        tiers = {str(k).lower() for k in ins["benchmarks"]}
        if str(ins["default_tier"]).lower() not in tiers:
            raise ValueError(f"default_tier {ins['default_tier']!r} has no benchmarks; known tiers: {sorted(tiers)}")
        return cls(
            min_games_strong=int(ins["min_games_strong"]),
            min_games_role=int(ins["min_games_role"]),
            full_confidence_games=max(1, int(ins["full_confidence_games"])),
            default_tier=str(ins["default_tier"]).lower(),
            overall_weights={k: float(v) for k, v in ins["overall_weights"].items()},
            overall_targets={k: float(v) for k, v in ins["overall_targets"].items()},
            rank_bands=sorted(((float(t), str(n), float(c)) for t, n, c in ins["rank_bands"]), reverse=True),
            rank_floor=(str(ins["rank_floor"][0]), float(ins["rank_floor"][1])),
            rating_cuts=sorted(((float(t), str(n)) for t, n in ins["rating_cuts"]), reverse=True),
            rating_floor=str(ins["rating_floor"]),
            strengths=[(str(m), str(op), float(t), str(label)) for m, op, t, label in ins["strengths"]],
            strengths_fallback=str(ins["strengths_fallback"]),
            improvements=[(str(m), str(op), float(t), str(label)) for m, op, t, label in ins["improvements"]],
            improvements_fallback=str(ins["improvements_fallback"]),
            benchmarks={str(k).lower(): {mk: float(mv) for mk, mv in v.items()} for k, v in ins["benchmarks"].items()},
            timezone=str(tr["timezone"]),
            window_points=int(tr["window_points"]),
            stable_band_pct=float(tr["stable_band_pct"]),
            horizon_days=int(tr["horizon_days"]),
        )


@dataclass
class RankPrediction:
    tier: str
    division: str
    confidence: float
    score: float


@dataclass
class ChampionAdvice:
    champion_id: int
    champion_name: str
    games: int
    win_rate: float
    grade: Optional[str]
    trend: str
    recommendation: str


@dataclass
class PeakPerformance:
    date: str
    match_id: str
    champion_name: str
    kda: float
    damage: int
    score: float


@dataclass
class ComparisonMetric:
    category: str
    metric: str
    player_value: float
    average_value: float
    percentile: float
    rating: str


@dataclass
class Insights:
    puuid: str
    games: int
    overall_score: float
    primary_role: str
    secondary_role: Optional[str]
    recommended_role: str
    roles: List[RoleStats]
    strengths: List[str]
    improvements: List[str]
    strongest_champions: List[str]
    weakest_champions: List[str]
    champions: List[ChampionAdvice]
    predicted_rank: RankPrediction
    trend: str
    trend_delta: float
    trend_series: List[TrendPoint]
    forecast: List[TrendPoint]
    peak: Optional[PeakPerformance]
    overall: OverallStats

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["trend_series"] = [p.to_dict() for p in self.trend_series]
        d["forecast"] = [p.to_dict() for p in self.forecast]
        return d


def overall_score(overall: OverallStats, cfg: InsightConfig) -> float:
    """Weighted 0-100 blend; each metric scores 100 at its target value."""
    values = {
        "win_rate": overall.win_rate,
        "kda": overall.kda,
        "cs": overall.avg_cs,
        "damage": overall.avg_damage,
        "vision": overall.avg_vision,
        "gold": overall.avg_gold,
    }
    score = 0.0
    for metric, weight in cfg.overall_weights.items():
        target = cfg.overall_targets.get(metric) or 0.0
        if target <= 0:
            continue
        score += weight * min(100.0, max(0.0, values.get(metric, 0.0) / target * 100.0))
    return round(score, 1)


def predict_rank(score: float, games: int, cfg: InsightConfig) -> RankPrediction:
    upper = 100.0
    tier, base = cfg.rank_floor
    lower = 0.0
    for threshold, name, conf in cfg.rank_bands:
        if score >= threshold:
            tier, base, lower = name, conf, threshold
            break
        upper = threshold
    span = upper - lower
    pos = (score - lower) / span if span > 0 else 1.0
    division = DIVISIONS[max(0, min(len(DIVISIONS) - 1, int(pos * len(DIVISIONS))))]
    confidence = base * min(1.0, games / cfg.full_confidence_games)
    return RankPrediction(tier=tier, division=division, confidence=round(confidence, 2), score=score)


def _apply_rules(metrics: Mapping[str, float], rules: Sequence[Tuple[str, str, float, str]], fallback: str) -> List[str]:
    out = []
    for metric, op, threshold, label in rules:
        if metric not in metrics:
            log.debug("insight rule refers to unknown metric %s", metric)
            continue
        if _OPS[op](metrics[metric], threshold):
            out.append(label)
    if not out and fallback:
        out.append(fallback)
    return out


def recommendation_for(win_rate: float) -> str:
    if win_rate > 70.0:
        return "Keep playing this champion - excellent performance!"
    if win_rate > 50.0:
        return "Solid performance - consider mastering this champion further."
    return "Consider practicing this champion more or trying alternatives."


def _champion_trends(records: Sequence[MatchRecord], cfg: InsightConfig) -> Dict[int, str]:
    by_champ: Dict[int, List[MatchRecord]] = {}
    for rec in records:
        by_champ.setdefault(rec.champion_id, []).append(rec)
    out: Dict[int, str] = {}
    for cid, recs in by_champ.items():
        recs.sort(key=lambda r: r.timestamp_ms)
        label, _ = trend_direction(
            [record_performance(r) for r in recs], window=cfg.window_points, band_pct=cfg.stable_band_pct
        )
        out[cid] = label
    return out


def _peak(records: Sequence[MatchRecord], tz: str) -> Optional[PeakPerformance]:
    if not records:
        return None
    best = max(records, key=lambda r: r.kda * r.damage / 1000.0)
    return PeakPerformance(
        date=day_of(best.timestamp_ms, resolve_tz(tz)),
        match_id=best.match_id,
        champion_name=best.champion_name,
        kda=round(best.kda, 2),
        damage=best.damage,
        score=round(best.kda * best.damage / 1000.0, 2),
    )


def _roles(roles: Sequence[RoleStats], cfg: InsightConfig) -> Tuple[str, Optional[str], str]:
    known = [r for r in roles if r.role != UNKNOWN_ROLE]
    primary = known[0].role if known else UNKNOWN_ROLE
    secondary = known[1].role if len(known) > 1 else None
    eligible = sorted((r for r in known if r.games >= cfg.min_games_role), key=lambda r: r.win_rate, reverse=True)
    recommended = eligible[0].role if eligible else primary
    return primary, secondary, recommended


def generate_insights(
    puuid: str,
    records: Sequence[MatchRecord],
    mastery: Iterable[MasteryRecord] = (),
    config: Optional[InsightConfig] = None,
    champions: Optional[List[ChampionStats]] = None,
) -> Insights:
    cfg = config or InsightConfig.from_config()
    records = list(records)
    if champions is None:
        champions = aggregate(records, mastery)
    overall = overall_stats(records)
    roles = role_stats(records)
    primary, secondary, recommended = _roles(roles, cfg)

    score = overall_score(overall, cfg)
    metrics = overall.metrics()
    if records:
        strengths = _apply_rules(metrics, cfg.strengths, cfg.strengths_fallback)
        improvements = _apply_rules(metrics, cfg.improvements, cfg.improvements_fallback)
    else:
        strengths, improvements = [], []

    ranked = sorted((c for c in champions if c.games >= cfg.min_games_strong), key=lambda c: c.win_rate, reverse=True)
    strongest = [c.champion_name for c in ranked[:3]]
    weakest = [c.champion_name for c in reversed(ranked[-3:])]

    champ_trends = _champion_trends(records, cfg)
    advice = [
        ChampionAdvice(
            champion_id=c.champion_id,
            champion_name=c.champion_name,
            games=c.games,
            win_rate=round(c.win_rate, 1),
            grade=c.grade,
            trend=champ_trends.get(c.champion_id, "stable"),
            recommendation=recommendation_for(c.win_rate),
        )
        for c in champions
        if c.games > 0
    ]

    series = calculate_trends(records, tz=cfg.timezone)
    trend, delta = trend_direction(
        [p.performance for p in series], window=cfg.window_points, band_pct=cfg.stable_band_pct
    )

    return Insights(
        puuid=puuid,
        games=overall.total_games,
        overall_score=score,
        primary_role=primary,
        secondary_role=secondary,
        recommended_role=recommended,
        roles=roles,
        strengths=strengths,
        improvements=improvements,
        strongest_champions=strongest,
        weakest_champions=weakest,
        champions=advice,
        predicted_rank=predict_rank(score, overall.total_games, cfg),
        trend=trend,
        trend_delta=round(delta, 2),
        trend_series=series,
        forecast=predict(series, cfg.horizon_days, window=cfg.window_points),
        peak=_peak(records, cfg.timezone),
        overall=overall,
    )


def percentile(player: float, average: float) -> float:
    if average <= 0:
        return 50.0
    return max(0.0, min(100.0, player / average * 50.0))


def rating_for(pct: float, cfg: InsightConfig) -> str:
    for threshold, label in cfg.rating_cuts:
        if pct >= threshold:
            return label
    return cfg.rating_floor


def benchmarks_for(tier: Optional[str], cfg: InsightConfig) -> Tuple[str, Dict[str, float]]:
    key = (tier or cfg.default_tier).strip().lower()
    if key not in cfg.benchmarks:
        log.warning("no benchmarks for tier %r, using %s", tier, cfg.default_tier)
        key = cfg.default_tier
    return key, cfg.benchmarks[key]


def compare(
    player_metrics: Any,
    reference_tier: Optional[str] = None,
    config: Optional[InsightConfig] = None,
) -> List[ComparisonMetric]:
    """Rate each metric against the reference tier's average player."""
    cfg = config or InsightConfig.from_config()
    if isinstance(player_metrics, OverallStats):
        player_metrics = player_metrics.metrics()
    _, bench = benchmarks_for(reference_tier, cfg)
    out = []
    for metric, category in COMPARISON_CATEGORIES:
        value = float(player_metrics.get(metric, 0.0) or 0.0)
        avg = float(bench.get(metric, 0.0))
        pct = percentile(value, avg)
        out.append(
            ComparisonMetric(
                category=category,
                metric=metric,
                player_value=round(value, 2),
                average_value=avg,
                percentile=round(pct, 1),
                rating=rating_for(pct, cfg),
            )
        )
    return out

