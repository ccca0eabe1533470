"""
Process handle: one external process, queried without ever blocking on it.

stdout and stderr go to anonymous temporary files rather than pipes, so a
chatty child never stalls on a full pipe buffer while the scheduler is busy
with other sites, and outputs of concurrent children never mix.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from enum import Enum
from typing import IO, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    TERMINATED = "terminated"


class ProcessHandle:
    """Wraps ``subprocess.Popen`` with a monotonic NOT_STARTED -> RUNNING -> TERMINATED lifecycle."""

    def __init__(self, argv: Sequence[str], cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None):
        self.argv: List[str] = list(argv)
        self.cwd = cwd
        self.env = env
        self._popen: Optional[subprocess.Popen] = None
        self._out: Optional[IO[bytes]] = None
        self._err: Optional[IO[bytes]] = None
        self._returncode: Optional[int] = None
        self._stdout = ""
        self._stderr = ""

    def __repr__(self) -> str:
        return f"ProcessHandle({shlex.join(self.argv)!r}, state={self.state().value})"

    def start(self) -> None:
        if self._popen is not None or self._returncode is not None:
            raise RuntimeError(f"process already started: {shlex.join(self.argv)}")
        self._out = tempfile.TemporaryFile()
        self._err = tempfile.TemporaryFile()
        logger.debug(f"spawn {shlex.join(self.argv)} cwd={self.cwd}")
        try:
            self._popen = subprocess.Popen(
                self.argv,
                cwd=self.cwd,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=self._out,
                stderr=self._err,
            )
        except OSError as e:
            # Could not spawn at all: report it as a terminated failure
            logger.error(f"spawn error for {self.argv[0]}: {e}")
            self._returncode = 127
            self._stderr = str(e)
            self._close_files()

    def state(self) -> ProcessState:
        if self._returncode is not None:
            return ProcessState.TERMINATED
        if self._popen is None:
            return ProcessState.NOT_STARTED
        rc = self._popen.poll()
        if rc is None:
            return ProcessState.RUNNING
        self._returncode = rc
        self._collect()
        return ProcessState.TERMINATED

    def _collect(self) -> None:
        for attr, fh in (("_stdout", self._out), ("_stderr", self._err)):
            if fh is None:
                continue
            fh.seek(0)
            setattr(self, attr, fh.read().decode(errors="replace"))
        self._close_files()

    def _close_files(self) -> None:
        for fh in (self._out, self._err):
            if fh is not None:
                fh.close()
        self._out = self._err = None

    @property
    def returncode(self) -> Optional[int]:
        return self._returncode

    def succeeded(self) -> bool:
        return self._returncode == 0

    def stdout(self) -> str:
        return self._stdout

    def stderr(self) -> str:
        return self._stderr

    def terminate(self) -> None:
        """Stop a running child; used by the CLI on interrupt."""
        if self._popen is not None and self._returncode is None:
            self._popen.terminate()
            try:
                self._popen.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._popen.kill()
                self._popen.wait()
            self.state()


def spawn(argv: Sequence[str]) -> ProcessHandle:
    """Create a handle for ``argv``; the process is started later by the scheduler."""
    return ProcessHandle(argv, env=os.environ.copy())
