from __future__ import annotations

import bisect
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .champions import placeholder_name
from .errors import AggregationInconsistency
from .grading import composite_score, grade_for_score, match_score
from .normalize import MasteryRecord, MatchRecord, kda_ratio


log = logging.getLogger(__name__)

RECENT_FORM_SIZE = 5
OVERALL_FORM_SIZE = 10


def _running(old: float, sample: float, n: int) -> float:
    return (old * (n - 1) + sample) / n


@dataclass
class ChampionStats:
    champion_id: int
    champion_name: str
    games: int = 0
    wins: int = 0
    win_rate: float = 0.0
    avg_kda: float = 0.0
    avg_kills: float = 0.0
    avg_deaths: float = 0.0
    avg_assists: float = 0.0
    avg_damage: float = 0.0
    avg_vision: float = 0.0
    avg_gold: float = 0.0
    avg_cs: float = 0.0
    avg_cs_per_min: float = 0.0
    avg_kill_participation: float = 0.0
    avg_damage_share: Optional[float] = None
    first_blood_rate: float = 0.0
    roles: Counter = field(default_factory=Counter)
    multikills: int = 0
    penta_kills: int = 0
    last_played_ms: int = 0
    mastery_points: int = 0
    mastery_level: int = 0
    score: int = 0
    grade: Optional[str] = None
    # (timestamp_ms, win) for the most recent games, oldest first
    _form: List[Tuple[int, bool]] = field(default_factory=list, repr=False)
    _share_games: int = field(default=0, repr=False)

    @property
    def losses(self) -> int:
        return self.games - self.wins

    @property
    def recent_form(self) -> List[bool]:
        return [w for _, w in self._form]

    @property
    def main_role(self) -> Optional[str]:
        if not self.roles:
            return None
        return self.roles.most_common(1)[0][0]

    def to_dict(self) -> Dict[str, object]:
        return {
            "champion_id": self.champion_id,
            "champion_name": self.champion_name,
            "games": self.games,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": round(self.win_rate, 1),
            "avg_kda": round(self.avg_kda, 2),
            "avg_kills": round(self.avg_kills, 1),
            "avg_deaths": round(self.avg_deaths, 1),
            "avg_assists": round(self.avg_assists, 1),
            "avg_damage": round(self.avg_damage),
            "avg_vision": round(self.avg_vision, 1),
            "avg_gold": round(self.avg_gold),
            "avg_cs": round(self.avg_cs, 1),
            "avg_cs_per_min": round(self.avg_cs_per_min, 2),
            "avg_kill_participation": round(self.avg_kill_participation, 1),
            "avg_damage_share": None if self.avg_damage_share is None else round(self.avg_damage_share, 1),
            "first_blood_rate": round(self.first_blood_rate, 1),
            "recent_form": self.recent_form,
            "roles": dict(self.roles),
            "main_role": self.main_role,
            "multikills": self.multikills,
            "penta_kills": self.penta_kills,
            "last_played_ms": self.last_played_ms,
            "mastery_points": self.mastery_points,
            "mastery_level": self.mastery_level,
            "score": self.score,
            "grade": self.grade,
        }


def fold(stats: ChampionStats, record: MatchRecord) -> ChampionStats:
    """Fold one game into `stats` with running averages."""
    stats.games += 1
    n = stats.games
    if record.win:
        stats.wins += 1
    stats.avg_kda = _running(stats.avg_kda, record.kda, n)
    stats.avg_kills = _running(stats.avg_kills, record.kills, n)
    stats.avg_deaths = _running(stats.avg_deaths, record.deaths, n)
    stats.avg_assists = _running(stats.avg_assists, record.assists, n)
    stats.avg_damage = _running(stats.avg_damage, record.damage, n)
    stats.avg_vision = _running(stats.avg_vision, record.vision_score, n)
    stats.avg_gold = _running(stats.avg_gold, record.gold, n)
    stats.avg_cs = _running(stats.avg_cs, record.cs, n)
    stats.avg_cs_per_min = _running(stats.avg_cs_per_min, record.cs_per_min, n)
    stats.avg_kill_participation = _running(stats.avg_kill_participation, record.kill_participation, n)
    stats.first_blood_rate = _running(stats.first_blood_rate, 100.0 if record.first_blood else 0.0, n)
    if record.damage_share is not None:
        # only games with a known team total count towards the share
        stats._share_games += 1
        stats.avg_damage_share = _running(stats.avg_damage_share or 0.0, record.damage_share, stats._share_games)
    stats.roles[record.role] += 1
    stats.multikills += record.multikills
    stats.penta_kills += record.penta_kills
    stats.last_played_ms = max(stats.last_played_ms, record.timestamp_ms)

    bisect.insort(stats._form, (record.timestamp_ms, record.win))
    if len(stats._form) > RECENT_FORM_SIZE:
        del stats._form[: len(stats._form) - RECENT_FORM_SIZE]
    return stats


def finalize(stats: ChampionStats) -> ChampionStats:
    stats.win_rate = stats.wins / stats.games * 100.0 if stats.games else 0.0
    if stats.games:
        stats.score = composite_score(
            stats.avg_kda,
            stats.win_rate,
            stats.avg_damage_share,
            stats.avg_vision,
            stats.avg_cs_per_min,
            stats.avg_kill_participation,
        )
        stats.grade = grade_for_score(stats.score)
    else:
        stats.score = 0
        stats.grade = None
    return stats


def _check(stats: ChampionStats, expected: int) -> None:
    problems = []
    if stats.games != expected:
        problems.append(f"games={stats.games} but {expected} records for this champion")
    if stats.games < 0 or not 0 <= stats.wins <= stats.games:
        problems.append(f"wins={stats.wins} games={stats.games}")
    if not 0.0 <= stats.win_rate <= 100.0:
        problems.append(f"win_rate={stats.win_rate}")
    if len(stats._form) > RECENT_FORM_SIZE:
        problems.append(f"recent_form has {len(stats._form)} entries")
    if sum(stats.roles.values()) != stats.games:
        problems.append("role counts do not add up to games")
    if problems:
        raise AggregationInconsistency(f"champion {stats.champion_id} ({stats.champion_name}): " + "; ".join(problems))


def aggregate(records: Iterable[MatchRecord], mastery: Iterable[MasteryRecord] = ()) -> List[ChampionStats]:
    """Per-champion stats, most played first.

    Every mastery entry is seeded so unplayed champions still appear with
    zero games. Records are folded in input order.
    """
    records = list(records)
    expected = Counter(rec.champion_id for rec in records)
    by_id: Dict[int, ChampionStats] = {}
    for m in mastery:
        if m.champion_id in by_id:
            continue
        by_id[m.champion_id] = ChampionStats(
            champion_id=m.champion_id,
            champion_name=m.champion_name,
            mastery_points=m.points,
            mastery_level=m.level,
            last_played_ms=m.last_play_ms,
        )

    for rec in records:
        stats = by_id.get(rec.champion_id)
        if stats is None:
            stats = ChampionStats(champion_id=rec.champion_id, champion_name=rec.champion_name)
            by_id[rec.champion_id] = stats
        elif stats.champion_name == placeholder_name(stats.champion_id):
            stats.champion_name = rec.champion_name
        fold(stats, rec)

    for cid, stats in by_id.items():
        finalize(stats)
        _check(stats, expected[cid])

    out = sorted(by_id.values(), key=lambda s: s.games, reverse=True)
    log.debug("aggregated %d champions", len(out))
    return out


@dataclass
class OverallStats:
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    kda: float = 0.0
    avg_kills: float = 0.0
    avg_deaths: float = 0.0
    avg_assists: float = 0.0
    avg_cs: float = 0.0
    avg_gold: float = 0.0
    avg_damage: float = 0.0
    avg_vision: float = 0.0
    avg_game_minutes: float = 0.0
    cs_per_min: float = 0.0
    gold_per_min: float = 0.0
    damage_per_min: float = 0.0
    vision_per_min: float = 0.0
    kill_participation: float = 0.0
    multikills: int = 0
    penta_kills: int = 0
    recent_form: List[bool] = field(default_factory=list)
    recent_win_rate: float = 0.0

    def metrics(self) -> Dict[str, float]:
        """Flat metric names used by insight rules and tier comparison."""
        return {
            "win_rate": self.win_rate,
            "kda": self.kda,
            "avg_kills": self.avg_kills,
            "avg_deaths": self.avg_deaths,
            "avg_assists": self.avg_assists,
            "avg_cs": self.avg_cs,
            "avg_gold": self.avg_gold,
            "avg_damage": self.avg_damage,
            "avg_vision": self.avg_vision,
            "vision": self.avg_vision,
            "cs_per_min": self.cs_per_min,
            "gold_per_min": self.gold_per_min,
            "damage_per_min": self.damage_per_min,
            "kill_participation": self.kill_participation,
            "recent_win_rate": self.recent_win_rate,
        }


def overall_stats(records: Sequence[MatchRecord]) -> OverallStats:
    n = len(records)
    if n == 0:
        return OverallStats()
    wins = sum(1 for r in records if r.win)
    kills = sum(r.kills for r in records)
    deaths = sum(r.deaths for r in records)
    assists = sum(r.assists for r in records)
    cs = sum(r.cs for r in records)
    gold = sum(r.gold for r in records)
    damage = sum(r.damage for r in records)
    vision = sum(r.vision_score for r in records)
    minutes = sum(r.duration_s for r in records) / 60.0

    ordered = sorted(records, key=lambda r: r.timestamp_ms)
    form = [r.win for r in ordered[-OVERALL_FORM_SIZE:]]

    def per_min(total: float) -> float:
        return total / minutes if minutes > 0 else 0.0

    return OverallStats(
        total_games=n,
        wins=wins,
        losses=n - wins,
        win_rate=wins / n * 100.0,
        kda=kda_ratio(kills, deaths, assists),
        avg_kills=kills / n,
        avg_deaths=deaths / n,
        avg_assists=assists / n,
        avg_cs=cs / n,
        avg_gold=gold / n,
        avg_damage=damage / n,
        avg_vision=vision / n,
        avg_game_minutes=minutes / n,
        cs_per_min=per_min(cs),
        gold_per_min=per_min(gold),
        damage_per_min=per_min(damage),
        vision_per_min=per_min(vision),
        kill_participation=sum(r.kill_participation for r in records) / n,
        multikills=sum(r.multikills for r in records),
        penta_kills=sum(r.penta_kills for r in records),
        recent_form=form,
        recent_win_rate=sum(1 for w in form if w) / len(form) * 100.0,
    )


@dataclass
class RoleStats:
    role: str
    games: int = 0
    wins: int = 0
    win_rate: float = 0.0
    avg_kda: float = 0.0
    avg_score: float = 0.0
    champions: List[str] = field(default_factory=list)


def role_stats(records: Iterable[MatchRecord]) -> List[RoleStats]:
    by_role: Dict[str, RoleStats] = {}
    for rec in records:
        rs = by_role.get(rec.role)
        if rs is None:
            rs = by_role[rec.role] = RoleStats(role=rec.role)
        rs.games += 1
        if rec.win:
            rs.wins += 1
        rs.avg_kda = _running(rs.avg_kda, rec.kda, rs.games)
        rs.avg_score = _running(rs.avg_score, match_score(rec), rs.games)
        if rec.champion_name not in rs.champions:
            rs.champions.append(rec.champion_name)
    for rs in by_role.values():
        rs.win_rate = rs.wins / rs.games * 100.0
    return sorted(by_role.values(), key=lambda r: r.games, reverse=True)
