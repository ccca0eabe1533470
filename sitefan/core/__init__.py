"""
Core modules: site directory, command building, process scheduling and rendering.
"""

from .configuration import RunConfig, ConfigurationLoader, load_run_config
from .errors import (
    SitefanError, ConfigurationError, FilterSyntaxError, NoSitesAvailable,
    TargetNotReady, CommandMalformed, InvalidTransition,
)
from .models import Site, Outcome, OutcomeStatus
from .sites import SiteDirectory
from .commands import CommandBuilder
from .process import ProcessHandle, ProcessState, spawn
from .results import ResultTable
from .scheduler import Scheduler
from .runner import MlcRunner, run_mlc

__all__ = [
    "RunConfig",
    "ConfigurationLoader",
    "load_run_config",
    "SitefanError",
    "ConfigurationError",
    "FilterSyntaxError",
    "NoSitesAvailable",
    "TargetNotReady",
    "CommandMalformed",
    "InvalidTransition",
    "Site",
    "Outcome",
    "OutcomeStatus",
    "SiteDirectory",
    "CommandBuilder",
    "ProcessHandle",
    "ProcessState",
    "spawn",
    "ResultTable",
    "Scheduler",
    "MlcRunner",
    "run_mlc",
]
