"""
Progress notifiers the scheduler reports to.

The scheduler never writes to a terminal itself; it calls a notifier.
``ConsoleNotifier`` prints progress with rich, ``NullNotifier`` drops
everything (structured output modes).
"""

from __future__ import annotations

from typing import Optional, Protocol

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from .models import Site


class Notifier(Protocol):
    def starting(self, site: Site) -> None: ...

    def succeeded(self, site: Site, stdout: str, stderr: str) -> None: ...

    def failed(self, site: Site, stdout: str, stderr: str) -> None: ...

    def skipped(self, site: Site, reason: str) -> None: ...


class NullNotifier:
    def starting(self, site: Site) -> None:
        pass

    def succeeded(self, site: Site, stdout: str, stderr: str) -> None:
        pass

    def failed(self, site: Site, stdout: str, stderr: str) -> None:
        pass

    def skipped(self, site: Site, reason: str) -> None:
        pass


class ConsoleNotifier:
    """Streams per-site progress to a rich console as each site completes."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def _block(self, text: str) -> None:
        text = text.rstrip()
        if text:
            # child output is printed verbatim, never as rich markup
            self.console.print(Text(text))

    def starting(self, site: Site) -> None:
        self.console.print(f"\n=> Executing command on [bold]{escape(site.name)}[/]")

    def succeeded(self, site: Site, stdout: str, stderr: str) -> None:
        self.console.print(f"\n[green]=> The command executed successfully for the site {escape(site.name)}.[/]")
        self._block(stdout)
        self._block(stderr)

    def failed(self, site: Site, stdout: str, stderr: str) -> None:
        self.console.print(f"\n[bold red]=> The command failed to execute for the site {escape(site.name)}.[/]")
        self._block(stderr)

    def skipped(self, site: Site, reason: str) -> None:
        self.console.print(f"\n[yellow]=> Skipping site {escape(site.name)}: {escape(reason)}[/]")
