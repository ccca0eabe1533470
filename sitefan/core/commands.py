"""
Command builder: turns the templated drush command into one argv per site.

The generated command line is::

    drush [@alias] --uri=<domain> <command> <args...> <options...> [--yes|--no]

Arguments and options may reference the placeholders ``{domain}``,
``{db_name}``, ``{name}`` and ``{site_id}``; they are replaced per site.
"""

from __future__ import annotations

import logging
import shlex
from typing import Dict, List, Optional, Union

from .errors import CommandMalformed, TargetNotReady
from .models import Site

logger = logging.getLogger(__name__)

OptionValue = Union[str, bool]

PLACEHOLDERS = ("domain", "db_name", "name", "site_id")


def parse_command_args(raw: str, db_name: str = "") -> List[str]:
    """Split a quoted, space delimited argument string."""
    try:
        return shlex.split(raw or "")
    except ValueError as e:
        raise CommandMalformed(db_name, f"cannot parse command arguments: {e}") from e


def parse_command_options(raw: str, db_name: str = "") -> Dict[str, OptionValue]:
    """Parse ``--key=value --flag -y`` into an ordered option mapping."""
    try:
        tokens = shlex.split(raw or "")
    except ValueError as e:
        raise CommandMalformed(db_name, f"cannot parse command options: {e}") from e
    options: Dict[str, OptionValue] = {}
    for tok in tokens:
        if not tok.startswith("-") or tok.strip("-") == "":
            raise CommandMalformed(db_name, f"option {tok!r} does not start with a dash")
        key, sep, value = tok.lstrip("-").partition("=")
        options[key] = value if sep else True
    return options


def format_option(key: str, value: OptionValue) -> str:
    dashes = "-" if len(key) == 1 else "--"
    if value is True:
        return f"{dashes}{key}"
    return f"{dashes}{key}={value}"


def apply_confirmation(options: Dict[str, OptionValue], mode: str) -> Dict[str, OptionValue]:
    """Add the confirmation flag forwarded to each generated command.

    ``yes`` forwards ``--yes`` unless the options already carry ``--no``,
    ``no`` always forwards ``--no``, ``none`` leaves the options alone.
    """
    out = dict(options)
    if mode == "none":
        return out
    if mode == "no" or out.get("no") or out.get("n"):
        out.pop("yes", None)
        out.pop("y", None)
        out["no"] = True
        return out
    if not (out.get("y") or out.get("yes")):
        out["yes"] = True
    return out


class CommandBuilder:
    """Builds the per-site drush argv; raises ``TargetNotReady`` for unusable sites."""

    def __init__(self, drush: str = "drush", alias: Optional[str] = None, confirmation_mode: str = "yes"):
        self.drush = drush
        self.alias = alias
        self.confirmation_mode = confirmation_mode

    def check_ready(self, site: Site) -> None:
        if not site.domain:
            raise TargetNotReady(site.db_name, "no domain available for --uri")
        if site.site_id is None or not site.conf:
            raise TargetNotReady(site.db_name, "site configuration missing (site not installed yet?)")

    @staticmethod
    def _substitute(text: str, site: Site) -> str:
        for key in PLACEHOLDERS:
            token = "{" + key + "}"
            if token in text:
                value = getattr(site, key)
                text = text.replace(token, "" if value is None else str(value))
        return text

    def build(self, site: Site, command: str, args: str = "", options: str = "") -> List[str]:
        self.check_ready(site)
        if not command or not command.strip():
            raise CommandMalformed(site.db_name, "empty drush command")
        cmd_parts = parse_command_args(command, site.db_name)
        arg_list = [self._substitute(a, site) for a in parse_command_args(args, site.db_name)]
        opts = apply_confirmation(parse_command_options(options, site.db_name), self.confirmation_mode)

        argv: List[str] = [self.drush]
        if self.alias:
            argv.append(self.alias)
        argv.append(f"--uri={site.domain}")
        argv.extend(cmd_parts)
        argv.extend(arg_list)
        argv.extend(format_option(k, self._substitute(v, site) if isinstance(v, str) else v) for k, v in opts.items())
        logger.debug(f"Prepared command for {site.db_name}: {shlex.join(argv)}")
        return argv
