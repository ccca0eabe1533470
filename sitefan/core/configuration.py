"""
Run configuration for sitefan.

Settings are read from a YAML file and overridden by explicit command line
flags. The merged ``RunConfig`` is decided once at run start and never
changes while the scheduler is running.

Example ``~/.sitefan.yaml``::

    concurrency_limit: 4
    domain_pattern: ".example.edu"
    use_https: true
    sites_filter: "name*=demo"
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV = "SITEFAN_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".sitefan.yaml"

PROGRESS_FORMAT = "progress"
OUTPUT_FORMATS = (PROGRESS_FORMAT, "table", "json", "yaml", "csv", "tsv")
DEFAULT_FIELDS = ["name", "result"]


class RunConfig(BaseModel):
    """Explicit options of one fan-out run."""

    domain_pattern: str = ""
    use_https: bool = False
    concurrency_limit: int = 0
    sites_filter: Optional[str] = None
    # Confirmation flag forwarded to every generated command
    confirmation_mode: Literal["yes", "no", "none"] = "yes"
    format: str = PROGRESS_FORMAT
    fields: List[str] = Field(default_factory=lambda: list(DEFAULT_FIELDS))
    filter: Optional[str] = None
    alias: Optional[str] = None
    alias_refresh: bool = False
    sites_file: Optional[Path] = None
    drush: str = "drush"
    poll_interval: float = 0.1

    @field_validator("format")
    @classmethod
    def format_known(cls, v: str) -> str:
        v = (v or PROGRESS_FORMAT).lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError(f"unsupported format {v!r}; choose one of {', '.join(OUTPUT_FORMATS)}")
        return v

    @field_validator("fields", mode="before")
    @classmethod
    def split_fields(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [f.strip() for f in v.split(",") if f.strip()]
        return v

    @field_validator("alias")
    @classmethod
    def alias_prefixed(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.startswith("@"):
            return f"@{v}"
        return v or None

    @field_validator("poll_interval")
    @classmethod
    def poll_interval_positive(cls, v: float) -> float:
        if v < 0:
            raise ValueError("poll_interval must be >= 0")
        return v

    @property
    def interactive(self) -> bool:
        return self.format == PROGRESS_FORMAT


class ConfigurationLoader:
    """YAML configuration file loader and validator."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = self.resolve_path(config_path)

    @staticmethod
    def resolve_path(config_path: Optional[Path] = None) -> Optional[Path]:
        """Explicit path, then $SITEFAN_CONFIG, then ~/.sitefan.yaml if it exists."""
        if config_path:
            return Path(config_path).expanduser()
        env = os.environ.get(CONFIG_ENV)
        if env:
            return Path(env).expanduser()
        if DEFAULT_CONFIG_PATH.exists():
            return DEFAULT_CONFIG_PATH
        return None

    def load_raw(self) -> Dict[str, Any]:
        if self.config_path is None:
            return {}
        if not self.config_path.exists():
            raise ConfigurationError(f"configuration file not found: {self.config_path}")
        logger.info(f"Loading configuration from {self.config_path}")
        try:
            data = yaml.safe_load(self.config_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {self.config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.config_path} must contain a mapping at top level")
        # Accept the dashed spelling used on the command line
        return {str(k).replace("-", "_"): v for k, v in data.items()}

    def load(self, overrides: Optional[Mapping[str, Any]] = None) -> RunConfig:
        """Merge file settings with overrides; ``None`` overrides are ignored."""
        raw = self.load_raw()
        unknown = sorted(set(raw) - set(RunConfig.model_fields))
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")
        for k, v in (overrides or {}).items():
            if v is not None:
                raw[k] = v
        try:
            return RunConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e


def load_run_config(config_path: Optional[Path] = None, **overrides: Any) -> RunConfig:
    return ConfigurationLoader(config_path).load(overrides)
