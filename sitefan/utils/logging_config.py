"""
Logging configuration for sitefan.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_PATH = Path.home() / ".sitefan" / "sitefan.log"
LOG_FILE_ENV = "SITEFAN_LOG_FILE"


class _FastFileHandler(logging.FileHandler):
    """File handler that can fsync on flush, for tailing the log during a run."""

    def __init__(self, filename, mode="a", encoding=None, delay=False, *, fsync=False):
        super().__init__(filename, mode=mode, encoding=encoding, delay=delay)
        self._fsync = bool(fsync)

    def flush(self):
        super().flush()
        if self._fsync and self.stream and hasattr(self.stream, "fileno"):
            try:
                os.fsync(self.stream.fileno())
            except OSError:
                pass


def _env_flag(name: str) -> bool:
    v = os.environ.get(name)
    if v is None:
        return False
    return v not in ("0", "false", "False", "no", "NO", "")


def default_log_path() -> Path:
    env = os.environ.get(LOG_FILE_ENV)
    return Path(env).expanduser() if env else LOG_PATH


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    console_level: Optional[str] = None,
) -> logging.Logger:
    """
    Setup logging configuration.

    Args:
        level: Logging level for the log file (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path, default ~/.sitefan/sitefan.log
        format_string: Custom format string
        console_level: Level of the stderr handler (quiet by default)

    Returns:
        Configured logger
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    log_path = Path(log_file) if log_file is not None else default_log_path()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for h in list(root.handlers):
        root.removeHandler(h)

    # File handler; skipped when the log directory is not writable
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = _FastFileHandler(log_path, fsync=_env_flag("SITEFAN_LOG_FSYNC"))
    except OSError as e:
        fh = None
        sys.stderr.write(f"sitefan: cannot write log file {log_path}: {e}\n")
    if fh is not None:
        fh.setFormatter(logging.Formatter(format_string))
        fh.setLevel(getattr(logging, level.upper()))
        root.addHandler(fh)

    # Console handler on stderr so structured output on stdout stays clean
    ch = logging.StreamHandler(sys.stderr)
    ch_level = console_level or "WARNING"
    ch.setLevel(getattr(logging, ch_level.upper()))
    ch.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(ch)

    return logging.getLogger("sitefan")
