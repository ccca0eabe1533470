"""
Site directory: reads the factory's sites.json and turns it into ``Site`` records.

sites.json is keyed by domain; several domains belong to the same database::

    {"sites": {
        "foo.example.acsitefactory.com": {"name": "foodb", "conf": {"gardens_site_id": 101}},
        "www.foo.edu": {"name": "foodb", "conf": {"gardens_site_id": 101}}
    }}

The directory groups entries by ``name`` (the db name) in first-seen order.
With an alias the file is fetched once from the remote factory through
``drush rsync`` and cached locally.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import ConfigurationError, NoSitesAvailable
from .models import Site

logger = logging.getLogger(__name__)

FACTORY_DOMAIN_SUFFIX = ".acsitefactory.com"
ALIAS_CACHE_DIR = Path.home() / ".sitefan" / "aliases"


def server_sites_json_path(env: Optional[Dict[str, str]] = None) -> Optional[Path]:
    """Location of sites.json on an Acquia server, None outside one."""
    env = os.environ if env is None else env
    group = env.get("AH_SITE_GROUP")
    stage = env.get("AH_SITE_ENVIRONMENT")
    if not group or not stage:
        return None
    return Path(f"/mnt/files/{group}.{stage}/files-private/sites.json")


def remote_sites_json_path(alias: str) -> str:
    """Remote sites.json path for an alias such as ``@mygroup.01live``."""
    group, _, stage = alias.lstrip("@").partition(".")
    if not group or not stage:
        raise ConfigurationError(f"alias must look like @group.environment, got {alias!r}")
    return f"/mnt/files/{group}.{stage}/files-private/sites.json"


def machine_name_for(domains: List[str]) -> str:
    for d in domains:
        if d.endswith(FACTORY_DOMAIN_SUFFIX):
            return d.split(".", 1)[0]
    return domains[0].split(".", 1)[0] if domains else ""


def resolve_domain(site: Site, domain_pattern: str = "", use_https: bool = False) -> str:
    """Pick the domain passed to ``--uri`` for a site.

    First domain containing ``domain_pattern`` when set, else the factory
    domain, else the first domain. Empty string when nothing matches.
    """
    domains = list(site.domains)
    chosen = ""
    if domain_pattern:
        chosen = next((d for d in domains if domain_pattern in d), "")
    else:
        chosen = next((d for d in domains if d.endswith(FACTORY_DOMAIN_SUFFIX)), domains[0] if domains else "")
    if chosen and use_https:
        chosen = f"https://{chosen}"
    return chosen


def parse_sites_json(data: Any) -> List[Site]:
    """Group the raw sites.json mapping into ordered ``Site`` records."""
    if not isinstance(data, dict) or not isinstance(data.get("sites"), dict):
        raise NoSitesAvailable("sites.json has no 'sites' mapping")
    grouped: Dict[str, Dict[str, Any]] = {}
    for domain, details in data["sites"].items():
        if not isinstance(details, dict) or not details.get("name"):
            logger.debug(f"Ignoring sites.json entry without db name: {domain}")
            continue
        entry = grouped.setdefault(details["name"], {
            "db_name": details["name"],
            "conf": details.get("conf") or {},
            "flags": details.get("flags") or {},
            "domains": [],
        })
        entry["domains"].append(domain)
        # A later entry may carry the conf the first one lacked
        if not entry["conf"] and details.get("conf"):
            entry["conf"] = details["conf"]

    sites: List[Site] = []
    for db_name, entry in grouped.items():
        conf = entry["conf"]
        site_id = conf.get("gardens_site_id") or conf.get("acsf_site_id")
        try:
            sites.append(Site(
                db_name=db_name,
                name=machine_name_for(entry["domains"]),
                site_id=int(site_id) if site_id is not None else None,
                domains=entry["domains"],
                conf=conf,
                flags=entry["flags"],
            ))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed site {db_name}: {e}")
    return sites


class SiteDirectory:
    """Lists the sites of a factory, from a local file or through an alias."""

    def __init__(
        self,
        sites_file: Optional[Path] = None,
        alias: Optional[str] = None,
        alias_refresh: bool = False,
        drush: str = "drush",
        cache_dir: Optional[Path] = None,
    ):
        self.sites_file = Path(sites_file).expanduser() if sites_file else None
        self.alias = alias
        self.alias_refresh = alias_refresh
        self.drush = drush
        self.cache_dir = Path(cache_dir) if cache_dir else ALIAS_CACHE_DIR

    def alias_cache_path(self) -> Path:
        safe = (self.alias or "").lstrip("@").replace("/", "_")
        return self.cache_dir / f"{safe}.sites.json"

    def fetch_alias_sites(self) -> Path:
        """Download the remote sites.json for the alias unless a cached copy exists."""
        cache = self.alias_cache_path()
        if cache.exists() and not self.alias_refresh:
            logger.debug(f"Using cached sites.json for {self.alias}: {cache}")
            return cache
        cache.parent.mkdir(parents=True, exist_ok=True)
        remote = f"{self.alias}:{remote_sites_json_path(self.alias)}"
        cmd = [self.drush, "rsync", remote, str(cache), "--yes"]
        logger.info(f"Fetching sites.json for {self.alias} into {cache}")
        try:
            res = subprocess.run(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise NoSitesAvailable(f"cannot run {self.drush}: {e}") from e
        if res.returncode != 0 or not cache.exists():
            stderr_txt = res.stderr.decode(errors="ignore").strip() if res.stderr else ""
            raise NoSitesAvailable(
                f"fetching sites.json for {self.alias} failed rc={res.returncode}"
                + (f"; stderr: {stderr_txt}" if stderr_txt else "")
            )
        return cache

    def locate(self) -> Path:
        if self.sites_file:
            return self.sites_file
        if self.alias:
            return self.fetch_alias_sites()
        path = server_sites_json_path()
        if path is None:
            raise NoSitesAvailable("not on a factory server (AH_SITE_GROUP / AH_SITE_ENVIRONMENT unset)")
        return path

    def list_sites(self) -> List[Site]:
        """Return every site of the factory; raises ``NoSitesAvailable`` when none."""
        path = self.locate()
        if not path.exists():
            raise NoSitesAvailable(f"sites.json not found: {path}")
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise NoSitesAvailable(f"cannot read {path}: {e}") from e
        sites = parse_sites_json(data)
        if not sites:
            raise NoSitesAvailable(f"no sites listed in {path}")
        logger.debug(f"Loaded {len(sites)} sites from {path}")
        return sites

    def resolved_sites(self, domain_pattern: str = "", use_https: bool = False) -> List[Site]:
        """Sites with their ``domain`` resolved for this run."""
        return [
            s.model_copy(update={"domain": resolve_domain(s, domain_pattern, use_https)})
            for s in self.list_sites()
        ]
