import pytest

from riftpulse import grading as g


@pytest.mark.parametrize(
    "kda,points",
    [(5.0, 30), (4.0, 30), (3.99, 25), (2.5, 20), (2.0, 15), (1.5, 10), (1.0, 5), (0.99, 0)],
)
def test_kda_tiers(kda, points):
    assert g.tier_points(kda, g.KDA_TIERS) == points


def test_other_tier_tables():
    assert g.tier_points(70, g.WIN_RATE_TIERS) == 25
    assert g.tier_points(44.9, g.WIN_RATE_TIERS) == 0
    assert g.tier_points(25, g.DAMAGE_SHARE_TIERS) == 12
    assert g.tier_points(39, g.VISION_TIERS) == 6
    assert g.tier_points(4.0, g.CS_PER_MIN_TIERS) == 2
    assert g.tier_points(79.9, g.KILL_PARTICIPATION_TIERS) == 8


@pytest.mark.parametrize(
    "score,grade",
    [(100, "S+"), (85, "S+"), (84, "S"), (75, "S"), (65, "A"), (64, "B"), (50, "B"), (35, "C"), (34, "D"), (0, "D")],
)
def test_grade_bands(score, grade):
    assert g.grade_for_score(score) == grade


def test_composite_maxes_at_hundred():
    assert g.composite_score(4.0, 70, 30, 50, 8, 80) == 100
    assert g.performance_grade(4.0, 70, 30, 50, 8, 80) == "S+"


def test_unknown_damage_share_scores_nothing():
    with_share = g.composite_score(3.0, 60, 20, 30, 6, 60)
    without = g.composite_score(3.0, 60, None, 30, 6, 60)
    assert with_share - without == 9
    assert without == 25 + 20 + 6 + 6 + 6


def test_match_grade_counts_win_as_full_rate(make_record):
    # kda 5 -> 30, wr 100 -> 25, share 40 -> 15, vision 25 -> 4, cs/min 7 -> 8, kp 62.5 -> 6
    win = make_record(kills=6, deaths=2, assists=4, win=True)
    assert g.match_score(win) == 88
    assert g.match_grade(win) == "S+"
    loss = make_record(kills=6, deaths=2, assists=4, win=False)
    assert g.match_score(loss) == 63
    assert g.match_grade(loss) == "B"


def test_table_is_versioned():
    assert g.GRADE_TABLE_VERSION == "grade.v1"
