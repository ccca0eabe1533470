"""
Error types raised by sitefan.

Only ``NoSitesAvailable`` and ``ConfigurationError`` end a run. Per-site
problems (``TargetNotReady``) are folded into the result table as skipped
rows and never abort the other sites.
"""

from __future__ import annotations


class SitefanError(Exception):
    """Base class for every error raised by sitefan."""


class ConfigurationError(SitefanError):
    """Invalid configuration file or command line options."""


class FilterSyntaxError(ConfigurationError):
    """A filter expression could not be parsed."""

    def __init__(self, expression: str, reason: str):
        super().__init__(f"invalid filter expression {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class NoSitesAvailable(SitefanError):
    """The site directory resolved no sites at all."""


class TargetNotReady(SitefanError):
    """A site cannot receive the command (missing domain, missing conf...)."""

    def __init__(self, db_name: str, reason: str):
        super().__init__(f"site {db_name} is not ready: {reason}")
        self.db_name = db_name
        self.reason = reason


class CommandMalformed(TargetNotReady):
    """The command arguments or options could not be turned into an argv."""


class InvalidTransition(SitefanError):
    """An outcome was asked to leave a terminal status."""
