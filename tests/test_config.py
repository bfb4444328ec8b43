import yaml

from riftpulse import config as cfgmod


def test_merge_defaults_fills_nested_keys():
    cfg = cfgmod.merge_defaults({"riot": {"region": "europe"}, "extra": 1})
    assert cfg["riot"]["region"] == "europe"
    assert cfg["riot"]["platform"] == "na1"
    assert cfg["fetch"]["match_count"] == 20
    assert cfg["extra"] == 1


def _linux_home(monkeypatch, tmp_path):
    monkeypatch.setattr(cfgmod.platform, "system", lambda: "Linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))


def test_get_config_writes_defaults(monkeypatch, tmp_path):
    _linux_home(monkeypatch, tmp_path)
    cfg = cfgmod.get_config()
    path = tmp_path / "riftpulse" / "config.yaml"
    assert cfgmod.config_path() == str(path)
    assert path.exists()
    assert cfg["quota"]["profile"] == "personal"


def test_get_config_overlays_user_file(monkeypatch, tmp_path):
    _linux_home(monkeypatch, tmp_path)
    (tmp_path / "riftpulse").mkdir()
    (tmp_path / "riftpulse" / "config.yaml").write_text(yaml.safe_dump({"trends": {"timezone": "Europe/Berlin"}}))
    cfg = cfgmod.get_config()
    assert cfg["trends"]["timezone"] == "Europe/Berlin"
    assert cfg["trends"]["horizon_days"] == 7


def test_save_config_round_trip(monkeypatch, tmp_path):
    _linux_home(monkeypatch, tmp_path)
    cfg = cfgmod.get_config()
    cfg["player"]["riot_id"] = "Someone#EUW"
    cfgmod.save_config(cfg)
    assert cfgmod.get_config()["player"]["riot_id"] == "Someone#EUW"


def test_api_key_prefers_keyring(monkeypatch):
    monkeypatch.setattr(cfgmod.keyring, "get_password", lambda service, name: "RGAPI-keyring")
    assert cfgmod.get_api_key(cfgmod.merge_defaults({})) == "RGAPI-keyring"


def test_api_key_falls_back_to_env(monkeypatch):
    monkeypatch.setattr(cfgmod.keyring, "get_password", lambda service, name: None)
    monkeypatch.setenv("MY_RIOT_KEY", "RGAPI-env")
    cfg = cfgmod.merge_defaults({"riot": {"api_key_env": "MY_RIOT_KEY"}})
    assert cfgmod.get_api_key(cfg) == "RGAPI-env"
