import pytest

from conftest import BASE_TS, DAY_MS

from riftpulse.aggregate import OverallStats
from riftpulse.insights import (
    InsightConfig,
    compare,
    generate_insights,
    overall_score,
    percentile,
    predict_rank,
    recommendation_for,
)


@pytest.fixture
def cfg():
    return InsightConfig.from_config()


def _metrics(scale):
    gold = {"win_rate": 56.0, "kda": 2.4, "cs_per_min": 5.8, "vision": 28.0, "damage_per_min": 550.0}
    return {k: v * scale for k, v in gold.items()}


@pytest.mark.parametrize(
    "scale,pct,rating",
    [(2.0, 100.0, "excellent"), (1.2, 60.0, "good"), (1.0, 50.0, "average"), (0.75, 37.5, "below-average"), (0.5, 25.0, "poor")],
)
def test_compare_against_gold(cfg, scale, pct, rating):
    out = compare(_metrics(scale), "gold", cfg)
    assert [m.category for m in out] == ["Win Rate", "KDA", "CS per Minute", "Vision Score", "Damage per Minute"]
    for m in out:
        assert m.percentile == pytest.approx(pct)
        assert m.rating == rating


def test_compare_unknown_tier_falls_back_to_gold(cfg):
    out = compare(_metrics(1.0), "challenger", cfg)
    assert out[0].average_value == 56.0
    assert compare(_metrics(1.0), None, cfg)[1].average_value == 2.4


def test_compare_uses_tier_benchmarks(cfg):
    out = compare({"win_rate": 65.0}, "Diamond", cfg)
    assert out[0].percentile == 50.0
    # missing metrics count as zero
    assert out[1].player_value == 0.0 and out[1].rating == "poor"


def test_percentile_clamps():
    assert percentile(1000, 10) == 100.0
    assert percentile(-5, 10) == 0.0
    assert percentile(3, 0) == 50.0


def test_thresholds_come_from_config():
    cfg = InsightConfig.from_config({"insights": {"rating_cuts": [[90, "elite"]], "rating_floor": "rest"}})
    out = compare(_metrics(2.0), "gold", cfg)
    assert {m.rating for m in out} == {"elite"}
    assert compare(_metrics(1.0), "gold", cfg)[0].rating == "rest"


def test_bad_rule_is_rejected():
    with pytest.raises(ValueError):
        InsightConfig.from_config({"insights": {"strengths": [["kda", "~", 2, "Something"]]}})


def test_rank_prediction(cfg):
    top = predict_rank(85.0, 20, cfg)
    assert (top.tier, top.division, top.confidence) == ("Diamond", "III", 0.85)
    assert predict_rank(100.0, 40, cfg).division == "I"
    gold = predict_rank(63.0, 4, cfg)
    assert (gold.tier, gold.division) == ("Gold", "III")
    assert gold.confidence == pytest.approx(0.15)
    low = predict_rank(10.0, 20, cfg)
    assert (low.tier, low.division, low.confidence) == ("Bronze", "IV", 0.7)


def test_overall_score_at_targets(cfg):
    ov = OverallStats(win_rate=100.0, kda=5.0, avg_cs=200, avg_damage=20000, avg_vision=50, avg_gold=15000)
    assert overall_score(ov, cfg) == 100.0
    assert overall_score(OverallStats(), cfg) == 0.0
    half = OverallStats(win_rate=50.0, kda=2.5, avg_cs=100, avg_damage=10000, avg_vision=25, avg_gold=7500)
    assert overall_score(half, cfg) == 50.0


def test_recommendation_text():
    assert recommendation_for(80).startswith("Keep playing")
    assert recommendation_for(70).startswith("Solid performance")
    assert recommendation_for(50).startswith("Consider practicing")


def test_insights_without_games(cfg):
    ins = generate_insights("me", [], config=cfg)
    assert ins.games == 0
    assert ins.primary_role == "UNKNOWN" and ins.secondary_role is None
    assert ins.strengths == [] and ins.improvements == []
    assert ins.trend == "stable"
    assert ins.forecast == [] and ins.peak is None
    assert ins.predicted_rank.confidence == 0.0


def test_insights_end_to_end(make_record, cfg):
    records = []
    for i in range(6):
        records.append(make_record(kills=8, deaths=1, assists=6, win=True, creation_ms=BASE_TS + i * DAY_MS))
    for i in range(5):
        records.append(
            make_record(
                champion_id=238,
                champion_name="Zed",
                kills=1,
                deaths=8,
                assists=1,
                win=False,
                position="TOP",
                creation_ms=BASE_TS + i * DAY_MS + 3600 * 1000,
            )
        )
    records.append(make_record(champion_id=22, champion_name="Ashe", position="BOTTOM", creation_ms=BASE_TS + 9 * DAY_MS))

    ins = generate_insights("me", records, config=cfg)
    assert ins.games == 12
    assert ins.primary_role == "MID"
    assert ins.secondary_role == "TOP"
    assert ins.recommended_role == "MID"
    assert ins.strongest_champions == ["Ahri", "Zed"]
    assert ins.weakest_champions == ["Zed", "Ahri"]
    by_name = {c.champion_name: c for c in ins.champions}
    assert by_name["Ahri"].recommendation.startswith("Keep playing")
    assert by_name["Zed"].recommendation.startswith("Consider practicing")
    assert by_name["Ahri"].trend == "stable"
    assert ins.peak.champion_name == "Ahri"
    assert ins.peak.kda == 14.0
    assert "Good farming" in ins.strengths
    assert [p.date for p in ins.trend_series][0] == "2024-03-01"
    assert len(ins.forecast) == cfg.horizon_days
    d = ins.to_dict()
    assert d["predicted_rank"]["tier"] == ins.predicted_rank.tier
    assert d["trend_series"][0]["date"] == "2024-03-01"


def test_default_tier_must_have_benchmarks():
    with pytest.raises(ValueError, match="default_tier"):
        InsightConfig.from_config({"insights": {"default_tier": "Master"}})
    custom = {"insights": {"default_tier": "Master", "benchmarks": {"master": {"win_rate": 70.0}}}}
    assert InsightConfig.from_config(custom).default_tier == "master"
