"""
Rendering of result rows: rich table or machine readable formats.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .errors import ConfigurationError

FIELD_LABELS: Dict[str, str] = {
    "status": "Command status",
    "result": "Command result",
    "domain": "Domain",
    "db_name": "DB name",
    "name": "Site name",
    "site_id": "Site ID",
}

SITE_FIELD_LABELS: Dict[str, str] = {
    "name": "Site name",
    "db_name": "DB name",
    "site_id": "Site ID",
    "domain": "Domain",
    "domains": "Domains",
}

_STATUS_STYLE = {
    "success": "bold green",
    "failure": "bold red",
    "skipped": "yellow",
    "pending": "cyan",
}


def select_fields(fields: Optional[Sequence[str]], labels: Mapping[str, str]) -> List[str]:
    """Validate requested fields; ``all`` (or nothing) selects every field."""
    if not fields or list(fields) == ["all"]:
        return list(labels)
    unknown = [f for f in fields if f not in labels]
    if unknown:
        raise ConfigurationError(
            f"unknown field(s): {', '.join(unknown)}; available: {', '.join(labels)}"
        )
    return list(fields)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def build_table(rows: Iterable[Mapping[str, Any]], fields: Sequence[str], labels: Mapping[str, str] = FIELD_LABELS) -> Table:
    table = Table(expand=False, show_lines=False)
    for f in fields:
        table.add_column(labels.get(f, f), overflow="fold")
    for row in rows:
        cells = []
        for f in fields:
            txt = _cell(row.get(f))
            if f == "status":
                cells.append(Text(txt, style=_STATUS_STYLE.get(txt, "white")))
            else:
                cells.append(Text(txt))
        table.add_row(*cells)
    return table


def format_rows(rows: Iterable[Mapping[str, Any]], fmt: str, fields: Sequence[str]) -> str:
    """Serialize rows restricted to ``fields`` as json, yaml, csv or tsv."""
    data = [{f: row.get(f) for f in fields} for row in rows]
    if fmt == "json":
        return json.dumps(data, indent=2)
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False) if data else "[]\n"
    if fmt in ("csv", "tsv"):
        buf = io.StringIO()
        writer = csv.writer(buf, delimiter="\t" if fmt == "tsv" else ",", lineterminator="\n")
        writer.writerow(fields)
        for item in data:
            writer.writerow([_cell(item[f]) for f in fields])
        return buf.getvalue()
    raise ConfigurationError(f"unsupported output format: {fmt}")


def render(
    rows: Iterable[Mapping[str, Any]],
    fmt: str,
    fields: Optional[Sequence[str]] = None,
    console: Optional[Console] = None,
    labels: Mapping[str, str] = FIELD_LABELS,
) -> None:
    console = console or Console()
    rows = list(rows)
    chosen = select_fields(fields, labels)
    if fmt == "table":
        console.print(build_table(rows, chosen, labels))
        return
    text = format_rows(rows, fmt, chosen)
    if not text.endswith("\n"):
        text += "\n"
    # plain text output, never interpreted as markup
    console.print(text, markup=False, highlight=False, end="", soft_wrap=True)
