from __future__ import annotations

import os
import platform
import subprocess
from pathlib import Path
from typing import Any, Dict

import keyring
import yaml


APP_DIR_NAME = "riftpulse"
CONFIG_FILE_NAME = "config.yaml"
KEYRING_SERVICE = "riftpulse.riot"


DEFAULT_CONFIG: Dict[str, Any] = {
    "riot": {
        "api_key_env": "RIOT_API_KEY",
        "region": "americas",  # routing for Account-V1 / Match-V5
        "platform": "na1",  # platform for mastery/league/spectator
    },
    "player": {
        "riot_id": "",
        "puuid": "",
    },
    "quota": {
        "profile": "personal",  # personal | production
    },
    "render": {
        "palette": {"ok": "green", "warn": "yellow", "bad": "red", "accent": "cyan", "neutral": "grey70"},
    },
    "cache": {
        "max_entries": 100,
        "sweep_interval_s": 300,
        "policy": "fail_fast",  # fail_fast | wait
        "max_wait_s": 5.0,
        # seconds per category: static, player, match, match_ids, live
        "ttl": {},
    },
    "fetch": {
        "match_count": 20,
        "max_workers": 8,
        "champion_names": "ddragon",  # ddragon | static
    },
    "trends": {
        "granularity": "daily",
        "timezone": "UTC",
        "window_points": 10,
        "stable_band_pct": 10.0,
        "horizon_days": 7,
    },
    "insights": {
        "min_games_strong": 5,
        "min_games_role": 3,
        "full_confidence_games": 20,
        "default_tier": "gold",
        "overall_weights": {
            "win_rate": 0.3,
            "kda": 0.2,
            "cs": 0.15,
            "damage": 0.15,
            "vision": 0.1,
            "gold": 0.1,
        },
        # value that maps to a full 100 on the overall score scale
        "overall_targets": {
            "win_rate": 100.0,
            "kda": 5.0,
            "cs": 200.0,
            "damage": 20000.0,
            "vision": 50.0,
            "gold": 15000.0,
        },
        # [min_score, tier, confidence], highest first; below the last band -> floor tier
        "rank_bands": [
            [80, "Diamond", 0.85],
            [70, "Platinum", 0.8],
            [60, "Gold", 0.75],
            [50, "Silver", 0.7],
        ],
        "rank_floor": ["Bronze", 0.7],
        # percentile cut points for comparison ratings, highest first
        "rating_cuts": [
            [65.0, "excellent"],
            [57.5, "good"],
            [42.5, "average"],
            [35.0, "below-average"],
        ],
        "rating_floor": "poor",
        # [metric, op, threshold, label]
        "strengths": [
            ["win_rate", ">", 60, "Consistent winner"],
            ["kda", ">", 2.5, "Strong KDA ratio"],
            ["avg_vision", ">", 30, "Excellent vision control"],
            ["avg_cs", ">", 150, "Good farming"],
            ["kill_participation", ">=", 65, "High teamfight presence"],
        ],
        "strengths_fallback": "Improving steadily",
        "improvements": [
            ["win_rate", "<", 50, "Focus on winning more games"],
            ["avg_deaths", ">", 6, "Reduce deaths and improve positioning"],
            ["avg_vision", "<", 20, "Increase ward placement and vision control"],
            ["avg_cs", "<", 120, "Improve CS and farming efficiency"],
            ["damage_per_min", "<", 400, "Increase damage output"],
        ],
        "improvements_fallback": "Continue current performance",
        "benchmarks": {
            "bronze": {"win_rate": 48.0, "kda": 1.8, "cs_per_min": 4.5, "vision": 15.0, "damage_per_min": 400.0},
            "silver": {"win_rate": 52.0, "kda": 2.1, "cs_per_min": 5.2, "vision": 22.0, "damage_per_min": 480.0},
            "gold": {"win_rate": 56.0, "kda": 2.4, "cs_per_min": 5.8, "vision": 28.0, "damage_per_min": 550.0},
            "platinum": {"win_rate": 60.0, "kda": 2.7, "cs_per_min": 6.4, "vision": 35.0, "damage_per_min": 620.0},
            "diamond": {"win_rate": 65.0, "kda": 3.1, "cs_per_min": 7.1, "vision": 42.0, "damage_per_min": 720.0},
        },
    },
}


def _user_config_dir() -> Path:
    system = platform.system()
    if system == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata) / APP_DIR_NAME
    elif system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    # Linux and others
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def config_path() -> str:
    return str(_user_config_dir() / CONFIG_FILE_NAME)


def ensure_paths() -> None:
    _user_config_dir().mkdir(parents=True, exist_ok=True)
    cfg_file = Path(config_path())
    if not cfg_file.exists():
        cfg_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))


def merge_defaults(cfg: Dict[str, Any], defaults: Dict[str, Any] = DEFAULT_CONFIG) -> Dict[str, Any]:
    out = dict(cfg)
    for k, v in defaults.items():
        if isinstance(v, dict):
            out[k] = merge_defaults(out.get(k) or {}, v)
        else:
            out.setdefault(k, v)
    return out


def get_config() -> Dict[str, Any]:
    ensure_paths()
    with open(config_path(), "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    return merge_defaults(cfg)


def save_config(cfg: Dict[str, Any]) -> None:
    ensure_paths()
    with open(config_path(), "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False)


def open_config_in_editor() -> bool:
    path = config_path()
    try:
        if platform.system() == "Windows":
            os.startfile(path)  # type: ignore[attr-defined]
        elif platform.system() == "Darwin":
            subprocess.run(["open", path], check=False)
        else:
            subprocess.run(["xdg-open", path], check=False)
        return True
    except OSError:
        return False


def get_api_key(cfg: Dict[str, Any] | None = None) -> str | None:
    # prefer keyring
    key = keyring.get_password(KEYRING_SERVICE, "api_key")
    if key:
        return key
    # fallback env
    cfg = cfg or get_config()
    env_name = cfg.get("riot", {}).get("api_key_env", "RIOT_API_KEY")
    return os.getenv(env_name)


def set_api_key(value: str) -> None:
    keyring.set_password(KEYRING_SERVICE, "api_key", value)
