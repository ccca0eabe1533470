from sitefan.core import configuration
from sitefan.core.configuration import ConfigurationLoader, RunConfig, load_run_config
from sitefan.core.errors import ConfigurationError
import pytest


@pytest.fixture(autouse=True)
def no_user_config(tmp_path, monkeypatch):
    monkeypatch.delenv(configuration.CONFIG_ENV, raising=False)
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")


def test_defaults():
    cfg = load_run_config()
    assert cfg == RunConfig()
    assert cfg.concurrency_limit == 0
    assert cfg.confirmation_mode == "yes"
    assert cfg.fields == ["name", "result"]
    assert cfg.interactive is True
    assert cfg.alias is None


def test_file_then_overrides(tmp_path):
    p = tmp_path / "sitefan.yaml"
    p.write_text("concurrency-limit: 4\ndomain_pattern: .edu\nuse_https: true\nformat: json\n")
    cfg = load_run_config(p, concurrency_limit=2, domain_pattern=None, fields="status,name")
    assert cfg.concurrency_limit == 2
    assert cfg.domain_pattern == ".edu"
    assert cfg.use_https is True
    assert cfg.format == "json"
    assert cfg.interactive is False
    assert cfg.fields == ["status", "name"]


def test_env_config_path(tmp_path, monkeypatch):
    p = tmp_path / "env.yaml"
    p.write_text("sites_filter: 'name*=demo'\n")
    monkeypatch.setenv(configuration.CONFIG_ENV, str(p))
    assert ConfigurationLoader().config_path == p
    assert load_run_config().sites_filter == "name*=demo"


def test_alias_gets_at_prefix():
    assert load_run_config(alias="acme.01live").alias == "@acme.01live"
    assert load_run_config(alias="@acme.01live").alias == "@acme.01live"


@pytest.mark.parametrize("content", [
    "format: xml\n",
    "colour: blue\n",
    "confirmation_mode: maybe\n",
    "- just\n- a list\n",
    "poll_interval: -1\n",
    "key: [unclosed\n",
])
def test_invalid_files(tmp_path, content):
    p = tmp_path / "bad.yaml"
    p.write_text(content)
    with pytest.raises(ConfigurationError):
        load_run_config(p)


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_run_config(tmp_path / "nope.yaml")
