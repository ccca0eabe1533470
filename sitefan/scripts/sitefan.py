#!/usr/bin/env python3
"""
sitefan: run one drush command on every site of a site factory

Commands:
  sitefan mlc CMD [ARGS] [-- OPTIONS]   # run CMD on all sites, concurrently
  sitefan list                          # list the sites of the factory
"""
from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.console import Console

from sitefan.core.configuration import OUTPUT_FORMATS, RunConfig, load_run_config
from sitefan.core.errors import ConfigurationError, NoSitesAvailable
from sitefan.core.filters import filter_rows
from sitefan.core.render import SITE_FIELD_LABELS, render
from sitefan.core.runner import MlcRunner, select_sites
from sitefan.utils.logging_config import setup_logging

logger = logging.getLogger("sitefan")

NO_SITES_HINT = (
    "Impossible to fetch the list of sites. If you are not on a factory server, use the --alias option."
)


def _config_from_args(args: argparse.Namespace) -> RunConfig:
    return load_run_config(
        Path(args.config) if args.config else None,
        domain_pattern=args.domain_pattern,
        use_https=True if args.use_https else None,
        concurrency_limit=args.concurrency_limit,
        sites_filter=args.sites_filter,
        confirmation_mode="no" if getattr(args, "no", False) else None,
        format=args.format,
        fields=args.fields,
        filter=args.filter,
        alias=args.alias,
        alias_refresh=True if args.alias_refresh else None,
        sites_file=Path(args.sites_file) if args.sites_file else None,
        drush=args.drush,
    )


def cmd_mlc(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    console = console or Console()
    config = _config_from_args(args)
    if config.interactive and (config.filter or args.fields):
        # rows are streamed as they complete, there is no table to filter
        logger.debug("--filter/--fields are ignored in progress mode")
    runner = MlcRunner(config)
    table = runner.run(args.cmd, args.command_args, args.command_options or "")
    results = runner.last_results
    if config.interactive:
        counts = results.counts()
        console.print(
            f"\nDone: {counts['success']} succeeded, {counts['failure']} failed, {counts['skipped']} skipped."
        )
    else:
        rows = filter_rows(table.rows(), config.filter, default_field="result")
        render(rows, config.format, config.fields, console=console)
    return 1 if results.has_failures else 0


def cmd_list(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    console = console or Console()
    config = _config_from_args(args)
    rows = [
        {
            "name": s.name,
            "db_name": s.db_name,
            "site_id": s.site_id,
            "domain": s.domain,
            "domains": list(s.domains),
        }
        for s in select_sites(config)
    ]
    rows = filter_rows(rows, config.filter, default_field="name")
    fmt = "table" if config.interactive else config.format
    render(rows, fmt, args.fields.split(",") if args.fields else None, console=console, labels=SITE_FIELD_LABELS)
    return 0


def _add_common(p: argparse.ArgumentParser, default_format: str) -> None:
    p.add_argument("--domain-pattern", default=None, help="Pattern / keyword choosing the domain used for --uri")
    p.add_argument("--use-https", action="store_true", help="Use secure urls for drush commands")
    p.add_argument("--sites-filter", default=None,
                   help="Filter the sites, e.g. 'name*=demo'. Fields: name, site_id, db_name, domain [default: name]")
    p.add_argument("--alias", default=None, help="Drush alias of a remote factory (@group.env); its sites.json is cached locally")
    p.add_argument("--alias-refresh", action="store_true", help="Force the refresh of the cached sites.json of --alias")
    p.add_argument("--sites-file", default=None, help="Read sites from this sites.json instead")
    p.add_argument("--format", choices=OUTPUT_FORMATS, default=None, help=f"Output format (default: {default_format})")
    p.add_argument("--fields", default=None, help="Comma separated fields to show, or 'all'")
    p.add_argument("--filter", default=None, help="Filter output rows with a field expression")
    p.add_argument("--drush", default=None, help="drush executable (default: drush)")
    p.add_argument("--config", default=None, help="YAML configuration file (default: $SITEFAN_CONFIG or ~/.sitefan.yaml)")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitefan", description="Run drush commands across all sites of a factory")
    sub = parser.add_subparsers(dest="sub")

    p_mlc = sub.add_parser(
        "mlc",
        aliases=["ml-concurrent"],
        help="Run a drush command on all sites, concurrently",
        epilog="Everything after -- is passed to drush as command options, e.g. sitefan mlc config:get 'system.site name' --format json -- --format=yaml",
    )
    p_mlc.add_argument("cmd", help="The drush command to run against all sites")
    p_mlc.add_argument("command_args", nargs="?", default="", help="Quoted, space delimited arguments for the command")
    p_mlc.add_argument("--command-options", default=None, metavar="OPTIONS",
                       help="Quoted, space delimited options for the command (same as the words after --)")
    p_mlc.add_argument("--concurrency-limit", type=int, default=None, help="Max commands in parallel, 0 for no limit")
    p_mlc.add_argument("--no", action="store_true", help="Answer 'no' to confirmations of the generated commands")
    _add_common(p_mlc, "progress")
    p_mlc.set_defaults(func=cmd_mlc)

    p_list = sub.add_parser("list", help="List the sites of the factory")
    p_list.set_defaults(func=cmd_list, concurrency_limit=None)
    _add_common(p_list, "table")
    return parser


def split_passthrough(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split argv at the first ``--``: sitefan's own words, then drush options."""
    argv = list(argv)
    if "--" not in argv:
        return argv, []
    i = argv.index("--")
    return argv[:i], argv[i + 1:]


def parse_args(argv: Optional[Sequence[str]] = None, parser: Optional[argparse.ArgumentParser] = None) -> argparse.Namespace:
    parser = parser or build_parser()
    own, passthrough = split_passthrough(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(own)
    if passthrough:
        if getattr(args, "func", None) is not cmd_mlc:
            parser.error("options after -- are only accepted by mlc")
        args.command_options = " ".join(filter(None, [args.command_options, shlex.join(passthrough)]))
    return args


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parse_args(argv, parser)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    setup_logging(level=args.log_level)
    try:
        return int(args.func(args))
    except NoSitesAvailable as e:
        logger.error(NO_SITES_HINT)
        logger.debug(f"site directory error: {e}")
        return 1
    except ConfigurationError as e:
        logger.error(str(e))
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
