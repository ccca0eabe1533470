"""
Scheduler: fans one command out over many sites under a concurrency limit.

Behavior:
- Build one command per site; sites the builder rejects are marked skipped
  and never get a process
- Poll every live process once per pass, in site order; fold terminated
  ones into their outcome, start new ones while below the limit
- Sleep ``poll_interval`` after a pass in which nothing changed
- Stop when no site holds a process anymore

Everything runs on the calling thread. The working set is never mutated
while iterated: entries stay in place and only their ``handle`` slot is
cleared once the outcome is final. There is no per-site timeout, a hung
process keeps the run waiting.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence

from .commands import CommandBuilder
from .errors import TargetNotReady
from .models import Outcome, Site
from .notifier import Notifier, NullNotifier
from .process import ProcessHandle, ProcessState, spawn
from .results import ResultTable

logger = logging.getLogger(__name__)

Spawner = Callable[[Sequence[str]], ProcessHandle]


@dataclass
class Entry:
    site: Site
    outcome: Outcome
    handle: Optional[ProcessHandle] = None

    @property
    def live(self) -> bool:
        return self.handle is not None


def combine_output(stdout: str, stderr: str) -> str:
    """Trimmed stdout followed by trimmed stderr."""
    return "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)


class Scheduler:
    """Bounded-concurrency process scheduler.

    Public API:
      - Scheduler(builder, spawner=spawn, notifier=None, poll_interval=0.1, sleep=time.sleep)
      - run(sites, command, args, options, concurrency_limit, interactive) -> ResultTable
      - last_results (property): full table of the latest run, in both modes
    """

    def __init__(
        self,
        builder: CommandBuilder,
        spawner: Spawner = spawn,
        notifier: Optional[Notifier] = None,
        poll_interval: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.builder = builder
        self.spawner = spawner
        self.notifier: Notifier = notifier or NullNotifier()
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._entries: "OrderedDict[str, Entry]" = OrderedDict()
        self._interactive = False

    @property
    def entries(self) -> "OrderedDict[str, Entry]":
        return self._entries

    @property
    def last_results(self) -> ResultTable:
        return ResultTable({k: e.outcome for k, e in self._entries.items()})

    # ---------- Admission ----------
    def prepare(self, sites: Iterable[Site], command: str, args: str = "", options: str = "") -> "OrderedDict[str, Entry]":
        entries: "OrderedDict[str, Entry]" = OrderedDict()
        for site in sites:
            if site.db_name in entries:
                raise ValueError(f"duplicate site db_name in working set: {site.db_name}")
            entry = Entry(site=site, outcome=Outcome.for_site(site))
            entries[site.db_name] = entry
            try:
                argv = self.builder.build(site, command, args, options)
            except TargetNotReady as e:
                logger.warning(f"Skipping {site.db_name}: {e.reason}")
                entry.outcome.mark_skipped(e.reason)
                if self._interactive:
                    self.notifier.skipped(site, e.reason)
                continue
            entry.handle = self.spawner(argv)
        return entries

    # ---------- Polling ----------
    def _fold(self, entry: Entry) -> None:
        handle = entry.handle
        stdout, stderr = handle.stdout(), handle.stderr()
        ok = handle.succeeded()
        entry.outcome.mark_finished(ok, combine_output(stdout, stderr))
        entry.handle = None
        logger.info(f"Site {entry.site.db_name} finished: {entry.outcome.status.value}")
        if self._interactive:
            if ok:
                self.notifier.succeeded(entry.site, stdout, stderr)
            else:
                self.notifier.failed(entry.site, stdout, stderr)

    def _start(self, entry: Entry) -> None:
        if self._interactive:
            self.notifier.starting(entry.site)
        logger.debug(f"Starting {entry.site.db_name}")
        entry.handle.start()

    def poll_pass(self, limit: int) -> bool:
        """One left-to-right pass over the working set; True when anything changed."""
        states: Dict[str, ProcessState] = {
            k: e.handle.state() for k, e in self._entries.items() if e.live
        }
        running = sum(1 for s in states.values() if s is ProcessState.RUNNING)
        progressed = False
        for key, entry in self._entries.items():
            if not entry.live:
                continue
            state = entry.handle.state()
            if state is ProcessState.RUNNING:
                continue
            if state is ProcessState.TERMINATED:
                if states.get(key) is ProcessState.RUNNING:
                    running -= 1
                self._fold(entry)
                progressed = True
                continue
            if limit <= 0 or running < limit:
                self._start(entry)
                running += 1
                progressed = True
                # a child that failed to spawn is already terminated
                if entry.handle.state() is ProcessState.TERMINATED:
                    running -= 1
        return progressed

    def _abort(self) -> None:
        for entry in self._entries.values():
            if entry.live and entry.handle.state() is ProcessState.RUNNING:
                logger.warning(f"Terminating {entry.site.db_name} after interrupt")
                entry.handle.terminate()

    def run(
        self,
        sites: Iterable[Site],
        command: str,
        args: str = "",
        options: str = "",
        concurrency_limit: int = 0,
        interactive: bool = False,
    ) -> ResultTable:
        """Run ``command`` on every site; return the ordered result table.

        In interactive mode progress is delivered through the notifier and the
        returned table is empty; ``last_results`` still holds every outcome.
        """
        self._interactive = interactive
        self._entries = OrderedDict()
        self._entries = self.prepare(sites, command, args, options)
        limit = int(concurrency_limit or 0)
        logger.debug(f"Scheduler started with {len(self._entries)} sites, concurrency_limit={limit}")
        try:
            while any(e.live for e in self._entries.values()):
                if not self.poll_pass(limit):
                    self._sleep(self.poll_interval)
        except KeyboardInterrupt:
            self._abort()
            raise
        counts = self.last_results.counts()
        logger.info(
            f"Run done: success {counts['success']} | failure {counts['failure']} | skipped {counts['skipped']}"
        )
        if interactive:
            return ResultTable()
        return self.last_results
