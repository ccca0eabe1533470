"""
Result table: ordered outcomes of one run, keyed by site db name.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .models import Outcome, OutcomeStatus


class ResultTable(Mapping[str, Outcome]):
    """Read-only ordered mapping ``db_name -> Outcome``.

    Key order is the order of the (filtered) site list handed to the
    scheduler, whatever order the processes finished in.
    """

    def __init__(self, outcomes: Optional[Mapping[str, Outcome]] = None):
        self._outcomes: "OrderedDict[str, Outcome]" = OrderedDict(outcomes or {})

    def __getitem__(self, key: str) -> Outcome:
        return self._outcomes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def __repr__(self) -> str:
        return f"ResultTable({self.counts()})"

    def rows(self) -> List[Dict[str, Any]]:
        return [o.row() for o in self._outcomes.values()]

    def counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in OutcomeStatus}
        for o in self._outcomes.values():
            counts[o.status.value] += 1
        return counts

    @property
    def has_failures(self) -> bool:
        return any(o.status is OutcomeStatus.FAILURE for o in self._outcomes.values())
