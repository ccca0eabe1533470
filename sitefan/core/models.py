"""
Pydantic models for sites and per-site outcomes.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import InvalidTransition


class Site(BaseModel):
    """One site of the factory; the unit the command is fanned out to."""

    model_config = ConfigDict(frozen=True)

    db_name: str
    name: str
    site_id: Optional[int] = None
    domains: List[str] = Field(default_factory=list)
    # Domain chosen for --uri; filled in by the directory before a run
    domain: str = ""
    conf: Dict[str, Any] = Field(default_factory=dict)
    flags: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("db_name")
    @classmethod
    def db_name_safe(cls, v: str) -> str:
        # db names end up in shell-visible places; keep them boring
        if not re.fullmatch(r"[A-Za-z0-9._-]+", v or ""):
            raise ValueError(f"db_name contains invalid characters: {v!r}")
        return v

    def field_value(self, field: str) -> Optional[str]:
        """Return the string form of a filterable field, None when unknown."""
        if field == "name":
            return self.name
        if field == "db_name":
            return self.db_name
        if field == "site_id":
            return "" if self.site_id is None else str(self.site_id)
        if field == "domain":
            return self.domain or (self.domains[0] if self.domains else "")
        return None


class OutcomeStatus(str, Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self is not OutcomeStatus.PENDING


ROW_FIELDS = ("status", "result", "domain", "db_name", "name", "site_id")


class Outcome(BaseModel):
    """Outcome record of one site for one run.

    Starts ``pending`` and moves exactly once to ``skipped``, ``success`` or
    ``failure``. Any further transition raises ``InvalidTransition``.
    """

    status: OutcomeStatus = OutcomeStatus.PENDING
    result: str = ""
    domain: str = ""
    db_name: str
    name: str
    site_id: Optional[int] = None

    @model_validator(mode="after")
    def check_result_status(self) -> "Outcome":
        if self.status is OutcomeStatus.PENDING and self.result:
            raise ValueError("pending outcomes carry no result")
        return self

    @classmethod
    def for_site(cls, site: Site) -> "Outcome":
        return cls(domain=site.domain, db_name=site.db_name, name=site.name, site_id=site.site_id)

    def _transition(self, status: OutcomeStatus, result: str) -> None:
        if self.status.is_terminal:
            raise InvalidTransition(
                f"outcome of {self.db_name} is already {self.status.value}, cannot become {status.value}"
            )
        self.status = status
        self.result = result

    def mark_skipped(self, reason: str = "") -> None:
        self._transition(OutcomeStatus.SKIPPED, reason)

    def mark_finished(self, succeeded: bool, result: str) -> None:
        self._transition(OutcomeStatus.SUCCESS if succeeded else OutcomeStatus.FAILURE, result)

    def row(self) -> Dict[str, Any]:
        """Flat row with the reporting fields, in reporting order."""
        return {
            "status": self.status.value,
            "result": self.result,
            "domain": self.domain,
            "db_name": self.db_name,
            "name": self.name,
            "site_id": self.site_id,
        }
