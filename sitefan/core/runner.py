"""
Run composition: site directory -> filter -> command builder -> scheduler.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .commands import CommandBuilder
from .configuration import RunConfig
from .filters import filter_sites
from .models import Site
from .notifier import ConsoleNotifier, Notifier, NullNotifier
from .process import spawn
from .results import ResultTable
from .scheduler import Scheduler, Spawner
from .sites import SiteDirectory

logger = logging.getLogger(__name__)


def directory_for(config: RunConfig) -> SiteDirectory:
    return SiteDirectory(
        sites_file=config.sites_file,
        alias=config.alias,
        alias_refresh=config.alias_refresh,
        drush=config.drush,
    )


def select_sites(config: RunConfig, directory: Optional[SiteDirectory] = None) -> List[Site]:
    """Resolved and filtered sites; raises ``NoSitesAvailable`` when the directory is empty."""
    directory = directory or directory_for(config)
    sites = directory.resolved_sites(config.domain_pattern, config.use_https)
    selected = filter_sites(sites, config.sites_filter, default_field="name")
    if config.sites_filter:
        logger.info(f"Sites filter {config.sites_filter!r} kept {len(selected)}/{len(sites)} sites")
    return selected


class MlcRunner:
    """Runs one drush command on every selected site of the factory."""

    def __init__(
        self,
        config: RunConfig,
        directory: Optional[SiteDirectory] = None,
        spawner: Spawner = spawn,
        notifier: Optional[Notifier] = None,
    ):
        self.config = config
        self.directory = directory or directory_for(config)
        if notifier is None:
            notifier = ConsoleNotifier() if config.interactive else NullNotifier()
        self.scheduler = Scheduler(
            CommandBuilder(drush=config.drush, alias=config.alias, confirmation_mode=config.confirmation_mode),
            spawner=spawner,
            notifier=notifier,
            poll_interval=config.poll_interval,
        )

    def run(self, command: str, args: str = "", options: str = "") -> ResultTable:
        sites = select_sites(self.config, self.directory)
        logger.info(f"Running '{command}' on {len(sites)} sites (concurrency_limit={self.config.concurrency_limit})")
        return self.scheduler.run(
            sites,
            command,
            args,
            options,
            concurrency_limit=self.config.concurrency_limit,
            interactive=self.config.interactive,
        )

    @property
    def last_results(self) -> ResultTable:
        return self.scheduler.last_results


def run_mlc(config: RunConfig, command: str, args: str = "", options: str = "", **kwargs) -> ResultTable:
    """Run ``command`` on the sites selected by ``config``; one-shot ``MlcRunner``."""
    return MlcRunner(config, **kwargs).run(command, args, options)
