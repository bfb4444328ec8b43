from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dateutil import tz as dtz

from .normalize import MatchRecord


GRANULARITIES = ("daily",)


@dataclass(frozen=True)
class TrendPoint:
    date: str  # YYYY-MM-DD
    win_rate: float
    avg_kda: float
    avg_damage: float
    avg_vision: float
    avg_cs: float
    performance: float
    games: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "win_rate": round(self.win_rate, 1),
            "avg_kda": round(self.avg_kda, 2),
            "avg_damage": round(self.avg_damage),
            "avg_vision": round(self.avg_vision, 1),
            "avg_cs": round(self.avg_cs, 1),
            "performance": round(self.performance, 1),
            "games": self.games,
        }


def performance_score(win_rate: float, kda: float, damage: float, vision: float, cs: float) -> float:
    return win_rate * 0.3 + kda * 20 + damage / 1000 + vision * 2 + cs / 10


def record_performance(record: MatchRecord) -> float:
    return performance_score(
        100.0 if record.win else 0.0,
        record.kda,
        record.damage,
        record.vision_score,
        record.cs,
    )


def resolve_tz(name: Optional[str]):
    zone = dtz.gettz(name or "UTC")
    if zone is None:
        raise ValueError(f"unknown timezone {name!r}")
    return zone


def day_of(timestamp_ms: int, zone) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=zone).date().isoformat()


def calculate_trends(records: Iterable[MatchRecord], tz: Optional[str] = "UTC", granularity: str = "daily") -> List[TrendPoint]:
    """One point per calendar day in `tz`, oldest first."""
    if granularity not in GRANULARITIES:
        raise ValueError(f"unsupported trend granularity {granularity!r}")
    zone = resolve_tz(tz)
    days: Dict[str, List[MatchRecord]] = {}
    for rec in records:
        days.setdefault(day_of(rec.timestamp_ms, zone), []).append(rec)

    out: List[TrendPoint] = []
    for day in sorted(days):
        recs = days[day]
        n = len(recs)
        win_rate = sum(1 for r in recs if r.win) / n * 100.0
        avg_kda = sum(r.kda for r in recs) / n
        avg_damage = sum(r.damage for r in recs) / n
        avg_vision = sum(r.vision_score for r in recs) / n
        avg_cs = sum(r.cs for r in recs) / n
        out.append(
            TrendPoint(
                date=day,
                win_rate=win_rate,
                avg_kda=avg_kda,
                avg_damage=avg_damage,
                avg_vision=avg_vision,
                avg_cs=avg_cs,
                performance=performance_score(win_rate, avg_kda, avg_damage, avg_vision, avg_cs),
                games=n,
            )
        )
    return out


def _halves(values: Sequence[float]) -> Tuple[float, float]:
    half = len(values) // 2
    first, second = values[:half], values[half:]
    return sum(first) / len(first), sum(second) / len(second)


def trend_direction(values: Iterable[float], window: Optional[int] = None, band_pct: float = 10.0) -> Tuple[str, float]:
    """Compare the mean of the older half with the newer half.

    Returns the label and the raw difference of the two means. The change
    counts only when it exceeds `band_pct` percent of the older mean.
    """
    vals = [float(v) for v in values]
    if window:
        vals = vals[-window:]
    if len(vals) < 2:
        return "stable", 0.0
    first, second = _halves(vals)
    delta = second - first
    if first == 0:
        if delta > 0:
            return "improving", delta
        if delta < 0:
            return "declining", delta
        return "stable", 0.0
    change = delta / abs(first) * 100.0
    if change > band_pct:
        return "improving", delta
    if change < -band_pct:
        return "declining", delta
    return "stable", delta


_FIELDS = ("win_rate", "avg_kda", "avg_damage", "avg_vision", "avg_cs")


def _slope(values: Sequence[float]) -> float:
    # the half means sit about n/2 points apart
    if len(values) < 2:
        return 0.0
    first, second = _halves(values)
    return (second - first) / (len(values) / 2.0)


def predict(history: Sequence[TrendPoint], horizon_days: int, window: Optional[int] = None) -> List[TrendPoint]:
    """Naive linear extrapolation of the daily series, one point per future day.

    Each metric continues at the rate implied by the half-to-half difference.
    This is a rough directional signal, not a statistical forecast.
    """
    if not history or horizon_days <= 0:
        return []
    pts = list(history)[-window:] if window else list(history)
    last = pts[-1]
    slopes = {f: _slope([getattr(p, f) for p in pts]) for f in _FIELDS}
    start = date.fromisoformat(last.date)

    out: List[TrendPoint] = []
    for i in range(1, horizon_days + 1):
        vals = {f: max(0.0, getattr(last, f) + slopes[f] * i) for f in _FIELDS}
        vals["win_rate"] = min(100.0, vals["win_rate"])
        out.append(
            replace(
                last,
                date=(start + timedelta(days=i)).isoformat(),
                performance=performance_score(
                    vals["win_rate"], vals["avg_kda"], vals["avg_damage"], vals["avg_vision"], vals["avg_cs"]
                ),
                games=0,
                **vals,
            )
        )
    return out

