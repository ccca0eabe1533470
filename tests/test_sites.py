import json
import subprocess

from sitefan.core.errors import ConfigurationError, NoSitesAvailable
from sitefan.core.sites import (
    SiteDirectory,
    parse_sites_json,
    remote_sites_json_path,
    resolve_domain,
    server_sites_json_path,
)
import pytest


SITES_JSON = {
    "sites": {
        "alpha.acme.acsitefactory.com": {"name": "alphadb", "conf": {"gardens_site_id": 11, "acsf_site_id": 11}, "flags": {}},
        "www.alpha.edu": {"name": "alphadb", "conf": {"gardens_site_id": 11, "acsf_site_id": 11}, "flags": {"preferred_domain": True}},
        "beta.acme.acsitefactory.com": {"name": "betadb", "conf": {"gardens_site_id": 12}},
        "gamma.acme.acsitefactory.com": {"name": "gammadb"},
        "broken.example.com": {"conf": {"gardens_site_id": 99}},
    }
}


def write_sites(tmp_path, data=SITES_JSON):
    p = tmp_path / "sites.json"
    p.write_text(json.dumps(data))
    return p


def test_parse_groups_domains_by_db_name():
    sites = parse_sites_json(SITES_JSON)
    assert [s.db_name for s in sites] == ["alphadb", "betadb", "gammadb"]
    alpha = sites[0]
    assert alpha.name == "alpha"
    assert alpha.site_id == 11
    assert alpha.domains == ["alpha.acme.acsitefactory.com", "www.alpha.edu"]
    gamma = sites[2]
    assert gamma.site_id is None
    assert gamma.conf == {}


def test_machine_name_prefers_factory_domain():
    sites = parse_sites_json({"sites": {
        "www.delta.org": {"name": "deltadb", "conf": {"gardens_site_id": 4}},
        "delta-site.acme.acsitefactory.com": {"name": "deltadb", "conf": {"gardens_site_id": 4}},
    }})
    assert sites[0].name == "delta-site"


def test_parse_rejects_missing_sites_mapping():
    with pytest.raises(NoSitesAvailable):
        parse_sites_json({"nope": 1})


def test_resolve_domain():
    alpha = parse_sites_json(SITES_JSON)[0]
    assert resolve_domain(alpha) == "alpha.acme.acsitefactory.com"
    assert resolve_domain(alpha, domain_pattern=".edu") == "www.alpha.edu"
    assert resolve_domain(alpha, domain_pattern=".edu", use_https=True) == "https://www.alpha.edu"
    assert resolve_domain(alpha, domain_pattern="nomatch") == ""


def test_directory_from_file(tmp_path):
    d = SiteDirectory(sites_file=write_sites(tmp_path))
    sites = d.resolved_sites(domain_pattern="alpha.edu")
    assert [s.domain for s in sites] == ["www.alpha.edu", "", ""]


def test_directory_missing_or_empty(tmp_path):
    with pytest.raises(NoSitesAvailable):
        SiteDirectory(sites_file=tmp_path / "missing.json").list_sites()
    with pytest.raises(NoSitesAvailable):
        SiteDirectory(sites_file=write_sites(tmp_path, {"sites": {}})).list_sites()
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(NoSitesAvailable):
        SiteDirectory(sites_file=bad).list_sites()


def test_server_path_from_environment(monkeypatch):
    assert server_sites_json_path({}) is None
    p = server_sites_json_path({"AH_SITE_GROUP": "acme", "AH_SITE_ENVIRONMENT": "01live"})
    assert str(p) == "/mnt/files/acme.01live/files-private/sites.json"
    monkeypatch.delenv("AH_SITE_GROUP", raising=False)
    monkeypatch.delenv("AH_SITE_ENVIRONMENT", raising=False)
    with pytest.raises(NoSitesAvailable):
        SiteDirectory().list_sites()


def test_remote_path_needs_group_and_env():
    assert remote_sites_json_path("@acme.01live") == "/mnt/files/acme.01live/files-private/sites.json"
    with pytest.raises(ConfigurationError):
        remote_sites_json_path("@acme")


def test_alias_fetch_and_cache(tmp_path, monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        # last positional is the local cache path
        dest = [c for c in cmd if c.endswith(".sites.json")][0]
        with open(dest, "w") as fh:
            json.dump(SITES_JSON, fh)
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    monkeypatch.setattr(subprocess, "run", fake_run)
    d = SiteDirectory(alias="@acme.01live", cache_dir=tmp_path / "cache")
    assert len(d.list_sites()) == 3
    assert calls[0][:3] == ["drush", "rsync", "@acme.01live:/mnt/files/acme.01live/files-private/sites.json"]
    # cached copy is reused
    d.list_sites()
    assert len(calls) == 1
    # unless a refresh is requested
    SiteDirectory(alias="@acme.01live", alias_refresh=True, cache_dir=tmp_path / "cache").list_sites()
    assert len(calls) == 2


def test_alias_fetch_failure(tmp_path, monkeypatch):
    monkeypatch.setattr(
        subprocess, "run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, b"", b"Could not find alias"),
    )
    d = SiteDirectory(alias="@acme.01live", cache_dir=tmp_path / "cache")
    with pytest.raises(NoSitesAvailable, match="Could not find alias"):
        d.list_sites()
