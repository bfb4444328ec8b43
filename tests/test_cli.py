import pytest
from typer.testing import CliRunner

from conftest import StubClient

from riftpulse import __main__ as cli
from riftpulse import config
from riftpulse.cache import UpstreamCache
from riftpulse.config import merge_defaults
from riftpulse.ratelimit import QuotaProfile, RateLimiter
from riftpulse.service import PlayerService


runner = CliRunner()


@pytest.fixture
def home(monkeypatch, tmp_path):
    monkeypatch.setattr(config.platform, "system", lambda: "Linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    return tmp_path


def _use_stub(monkeypatch, limited=False):
    def build(cfg=None):
        cfg = merge_defaults({"fetch": {"champion_names": "static"}})
        limiter = RateLimiter(QuotaProfile("test", 100, 120.0))
        return PlayerService(cfg, limiter, UpstreamCache(limiter), StubClient(limited))

    monkeypatch.setattr(cli.PlayerService, "from_config", staticmethod(build))


def test_config_path(home):
    result = runner.invoke(cli.app, ["config", "path"])
    assert result.exit_code == 0
    assert "riftpulse" in result.output


def test_report_json(home, monkeypatch):
    _use_stub(monkeypatch)
    result = runner.invoke(cli.app, ["report", "--riot-id", "Known#NA1", "--json"])
    assert result.exit_code == 0
    assert '"champion_name": "Ahri"' in result.output


def test_report_unknown_player(home, monkeypatch):
    _use_stub(monkeypatch)
    result = runner.invoke(cli.app, ["report", "--riot-id", "Ghost#NA1"])
    assert result.exit_code == 1


def test_report_rate_limited_exits_2(home, monkeypatch):
    _use_stub(monkeypatch, limited=True)
    result = runner.invoke(cli.app, ["report", "--riot-id", "Known#NA1"])
    assert result.exit_code == 2
