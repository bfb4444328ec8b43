from __future__ import annotations

from typing import Optional, Sequence, Tuple

from .normalize import MatchRecord


GRADE_TABLE_VERSION = "grade.v1"

# (threshold, points) pairs, highest threshold first
TierTable = Sequence[Tuple[float, int]]

KDA_TIERS: TierTable = ((4.0, 30), (3.0, 25), (2.5, 20), (2.0, 15), (1.5, 10), (1.0, 5))
WIN_RATE_TIERS: TierTable = ((70.0, 25), (60.0, 20), (55.0, 15), (50.0, 10), (45.0, 5))
DAMAGE_SHARE_TIERS: TierTable = ((30.0, 15), (25.0, 12), (20.0, 9), (15.0, 6), (10.0, 3))
VISION_TIERS: TierTable = ((50.0, 10), (40.0, 8), (30.0, 6), (20.0, 4), (10.0, 2))
CS_PER_MIN_TIERS: TierTable = ((8.0, 10), (7.0, 8), (6.0, 6), (5.0, 4), (4.0, 2))
KILL_PARTICIPATION_TIERS: TierTable = ((80.0, 10), (70.0, 8), (60.0, 6), (50.0, 4), (40.0, 2))

GRADE_BANDS: Sequence[Tuple[float, str]] = ((85.0, "S+"), (75.0, "S"), (65.0, "A"), (50.0, "B"), (35.0, "C"))
GRADE_FLOOR = "D"


def tier_points(value: float, table: TierTable) -> int:
    for threshold, points in table:
        if value >= threshold:
            return points
    return 0


def composite_score(
    kda: float,
    win_rate: float,
    damage_share: Optional[float],
    vision: float,
    cs_per_min: float,
    kill_participation: float,
) -> int:
    """Sum of the tier points, capped at 100. An unknown damage share scores nothing."""
    score = tier_points(kda, KDA_TIERS)
    score += tier_points(win_rate, WIN_RATE_TIERS)
    if damage_share is not None:
        score += tier_points(damage_share, DAMAGE_SHARE_TIERS)
    score += tier_points(vision, VISION_TIERS)
    score += tier_points(cs_per_min, CS_PER_MIN_TIERS)
    score += tier_points(kill_participation, KILL_PARTICIPATION_TIERS)
    return min(100, score)


def grade_for_score(score: float) -> str:
    for threshold, grade in GRADE_BANDS:
        if score >= threshold:
            return grade
    return GRADE_FLOOR


def performance_grade(
    kda: float,
    win_rate: float,
    damage_share: Optional[float],
    vision: float,
    cs_per_min: float,
    kill_participation: float,
) -> str:
    return grade_for_score(composite_score(kda, win_rate, damage_share, vision, cs_per_min, kill_participation))


def match_score(record: MatchRecord) -> int:
    """Composite score of a single game, counting it as a 100% or 0% win rate."""
    win_rate = 100.0 if record.win else 0.0
    return composite_score(
        record.kda,
        win_rate,
        record.damage_share,
        record.vision_score,
        record.cs_per_min,
        record.kill_participation,
    )


def match_grade(record: MatchRecord) -> str:
    return grade_for_score(match_score(record))
