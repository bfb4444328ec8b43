from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .champions import champion_name
from .errors import SkippableRecordError


log = logging.getLogger(__name__)


ROLES = ("TOP", "JUNGLE", "MID", "ADC", "SUPPORT")
UNKNOWN_ROLE = "UNKNOWN"

# 2100-01-01T00:00:00Z; later creation times are corrupt
MAX_TIMESTAMP_MS = 4102444800000

_POSITION_MAP = {
    "TOP": "TOP",
    "JUNGLE": "JUNGLE",
    "MIDDLE": "MID",
    "MID": "MID",
    "BOTTOM": "ADC",
    "BOT": "ADC",
    "UTILITY": "SUPPORT",
    "SUPPORT": "SUPPORT",
}


@dataclass(frozen=True)
class MatchRecord:
    match_id: str
    puuid: str
    timestamp_ms: int
    duration_s: int
    queue_id: int
    team_id: int
    win: bool
    kills: int
    deaths: int
    assists: int
    damage: int
    physical_damage: int
    magic_damage: int
    true_damage: int
    gold: int
    lane_minions: int
    jungle_minions: int
    vision_score: int
    wards_placed: int
    wards_killed: int
    double_kills: int
    triple_kills: int
    quadra_kills: int
    penta_kills: int
    first_blood: bool
    champion_id: int
    champion_name: str
    role: str
    team_kills: int
    team_damage: int
    team_gold: int
    # derived
    cs: int
    kda: float
    multikills: int
    cs_per_min: float
    gold_per_min: float
    damage_per_min: float
    vision_per_min: float
    kill_participation: float
    damage_share: Optional[float]
    gold_share: float


@dataclass(frozen=True)
class MasteryRecord:
    champion_id: int
    champion_name: str
    points: int
    level: int
    last_play_ms: int


@dataclass(frozen=True)
class RankEntry:
    queue_type: str
    tier: str
    division: str
    league_points: int
    wins: int
    losses: int
    win_rate: float


def kda_ratio(kills: int, deaths: int, assists: int) -> float:
    # a deathless game counts as kills + assists
    if deaths > 0:
        return (kills + assists) / deaths
    return float(kills + assists)


def detect_role(participant: Mapping[str, Any]) -> str:
    for field in ("teamPosition", "individualPosition", "lane"):
        pos = str(participant.get(field) or "").upper()
        if pos in _POSITION_MAP:
            return _POSITION_MAP[pos]
    return UNKNOWN_ROLE


def _int(p: Mapping[str, Any], key: str) -> int:
    try:
        return int(p.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def participant_by_puuid(match: Mapping[str, Any], puuid: str) -> Dict[str, Any]:
    info = match.get("info") if isinstance(match, Mapping) else None
    parts = info.get("participants") if isinstance(info, Mapping) else None
    if not isinstance(parts, list):
        raise SkippableRecordError("payload has no participants")
    for p in parts:
        if isinstance(p, Mapping) and p.get("puuid") == puuid:
            return dict(p)
    raise SkippableRecordError("player not in match participants")


def _duration_s(info: Mapping[str, Any]) -> int:
    raw = _int(info, "gameDuration")
    # before patch 11.20 gameDuration was milliseconds and gameEndTimestamp was absent
    if "gameEndTimestamp" not in info and raw > 36000:
        return raw // 1000
    return raw


def _team_totals(parts: Iterable[Mapping[str, Any]], team_id: int) -> Tuple[int, int, int]:
    kills = damage = gold = 0
    for p in parts:
        if isinstance(p, Mapping) and _int(p, "teamId") == team_id:
            kills += _int(p, "kills")
            damage += _int(p, "totalDamageDealtToChampions")
            gold += _int(p, "goldEarned")
    return kills, damage, gold


def _build_match_record(raw: Mapping[str, Any], puuid: str, names: Optional[Mapping[int, str]]) -> MatchRecord:
    me = participant_by_puuid(raw, puuid)
    info = raw["info"]
    meta = raw.get("metadata") or {}
    if not isinstance(meta, Mapping):
        raise SkippableRecordError("metadata is not an object")
    match_id = str(meta.get("matchId") or info.get("gameId") or "")
    if not match_id:
        raise SkippableRecordError("payload has no match id")
    timestamp_ms = _int(info, "gameCreation") or _int(info, "gameStartTimestamp")
    if timestamp_ms <= 0:
        raise SkippableRecordError(f"{match_id}: no creation timestamp")
    if timestamp_ms > MAX_TIMESTAMP_MS:
        raise SkippableRecordError(f"{match_id}: creation timestamp {timestamp_ms} out of range")

    duration_s = _duration_s(info)
    minutes = duration_s / 60.0 if duration_s > 0 else 0.0
    team_id = _int(me, "teamId")
    team_kills, team_damage, team_gold = _team_totals(info.get("participants") or [], team_id)

    kills, deaths, assists = _int(me, "kills"), _int(me, "deaths"), _int(me, "assists")
    damage = _int(me, "totalDamageDealtToChampions")
    gold = _int(me, "goldEarned")
    lane, jungle = _int(me, "totalMinionsKilled"), _int(me, "neutralMinionsKilled")
    cs = lane + jungle
    vision = _int(me, "visionScore")
    doubles, triples = _int(me, "doubleKills"), _int(me, "tripleKills")
    quadras, pentas = _int(me, "quadraKills"), _int(me, "pentaKills")
    cid = _int(me, "championId")

    def per_min(v: int) -> float:
        return v / minutes if minutes > 0 else 0.0

    return MatchRecord(
        match_id=match_id,
        puuid=puuid,
        timestamp_ms=timestamp_ms,
        duration_s=duration_s,
        queue_id=_int(info, "queueId"),
        team_id=team_id,
        win=bool(me.get("win")),
        kills=kills,
        deaths=deaths,
        assists=assists,
        damage=damage,
        physical_damage=_int(me, "physicalDamageDealtToChampions"),
        magic_damage=_int(me, "magicDamageDealtToChampions"),
        true_damage=_int(me, "trueDamageDealtToChampions"),
        gold=gold,
        lane_minions=lane,
        jungle_minions=jungle,
        vision_score=vision,
        wards_placed=_int(me, "wardsPlaced"),
        wards_killed=_int(me, "wardsKilled"),
        double_kills=doubles,
        triple_kills=triples,
        quadra_kills=quadras,
        penta_kills=pentas,
        first_blood=bool(me.get("firstBloodKill") or me.get("firstBloodAssist")),
        champion_id=cid,
        champion_name=champion_name(cid, me.get("championName"), names),
        role=detect_role(me),
        team_kills=team_kills,
        team_damage=team_damage,
        team_gold=team_gold,
        cs=cs,
        kda=kda_ratio(kills, deaths, assists),
        multikills=doubles + triples + quadras + pentas,
        cs_per_min=per_min(cs),
        gold_per_min=per_min(gold),
        damage_per_min=per_min(damage),
        vision_per_min=per_min(vision),
        kill_participation=(kills + assists) / team_kills * 100.0 if team_kills > 0 else 0.0,
        damage_share=damage / team_damage * 100.0 if team_damage > 0 else None,
        gold_share=gold / team_gold * 100.0 if team_gold > 0 else 0.0,
    )


def normalize_match(raw: Any, puuid: str, names: Optional[Mapping[int, str]] = None) -> Optional[MatchRecord]:
    """Canonical record for `puuid` in a raw Match-V5 payload, or None when unusable."""
    try:
        return _build_match_record(raw, puuid, names)
    except SkippableRecordError as e:
        log.debug("skipping match record: %s", e)
        return None


def normalize_matches(
    raws: Iterable[Any], puuid: str, names: Optional[Mapping[int, str]] = None
) -> Tuple[List[MatchRecord], int]:
    records: List[MatchRecord] = []
    skipped = 0
    for raw in raws:
        rec = normalize_match(raw, puuid, names)
        if rec is None:
            skipped += 1
            continue
        records.append(rec)
    if skipped:
        log.info("normalized %d match records, skipped %d", len(records), skipped)
    return records, skipped


def normalize_mastery(raws: Iterable[Any], names: Optional[Mapping[int, str]] = None) -> List[MasteryRecord]:
    out: List[MasteryRecord] = []
    for m in raws or []:
        if not isinstance(m, Mapping) or m.get("championId") is None:
            log.debug("skipping mastery entry without championId")
            continue
        cid = _int(m, "championId")
        out.append(
            MasteryRecord(
                champion_id=cid,
                champion_name=champion_name(cid, m.get("championName"), names),
                points=_int(m, "championPoints"),
                level=_int(m, "championLevel"),
                last_play_ms=_int(m, "lastPlayTime"),
            )
        )
    return out


def normalize_rank_entries(raws: Iterable[Any]) -> List[RankEntry]:
    out: List[RankEntry] = []
    for e in raws or []:
        if not isinstance(e, Mapping):
            continue
        wins, losses = _int(e, "wins"), _int(e, "losses")
        total = wins + losses
        out.append(
            RankEntry(
                queue_type=str(e.get("queueType") or ""),
                tier=str(e.get("tier") or "UNRANKED"),
                division=str(e.get("rank") or "IV"),
                league_points=_int(e, "leaguePoints"),
                wins=wins,
                losses=losses,
                win_rate=round(wins / total * 100.0, 1) if total else 0.0,
            )
        )
    return out


QUEUE_NAMES: Dict[int, str] = {
    420: "Ranked Solo/Duo",
    440: "Ranked Flex",
    450: "ARAM",
    700: "Clash",
    400: "Normal Draft",
    430: "Normal Blind",
}

SOLO_QUEUE = "RANKED_SOLO_5x5"
FLEX_QUEUE = "RANKED_FLEX_SR"


def queue_name(queue_id: int) -> str:
    return QUEUE_NAMES.get(int(queue_id), f"Queue {queue_id}")


def rank_for_queue(entries: Iterable[RankEntry], queue_type: str = SOLO_QUEUE) -> Optional[RankEntry]:
    for e in entries:
        if e.queue_type == queue_type:
            return e
    return None
