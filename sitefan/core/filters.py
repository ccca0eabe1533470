"""
Field based filter expressions.

The same grammar drives ``--sites-filter`` (over sites, default field
``name``) and the output ``--filter`` (over result rows, default field
``result``):

    term   := ["!"] [field op] value
    op     := "=" | "!=" | "*=" | "~="
    expr   := term ("&&" term)* ("||" term ("&&" term)*)*

``=`` is a case-insensitive exact match, ``*=`` a case-insensitive substring
match and ``~=`` a regular expression, optionally written ``/pattern/i``.
A bare ``value`` is ``<default field>=value``. ``&&`` and ``||`` inside a
``~=/pattern/`` value belong to the pattern; write such patterns with slashes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Pattern

from .errors import FilterSyntaxError
from .models import Site

Getter = Callable[[str], Optional[str]]

_TERM_RE = re.compile(
    r"^(?P<neg>!)?\s*(?:(?P<field>[A-Za-z_][A-Za-z0-9_]*)\s*(?P<op>\*=|~=|!=|=))?\s*(?P<value>.*)$",
    re.DOTALL,
)
_REGEX_VALUE_RE = re.compile(r"~=\s*/")


@dataclass(frozen=True)
class FilterTerm:
    field: str
    op: str
    value: str
    negate: bool = False
    regex: Optional[Pattern[str]] = None

    def matches(self, get: Getter) -> bool:
        actual = get(self.field)
        if actual is None:
            # unknown fields never match, negated or not
            return False
        if self.op == "=":
            hit = actual.lower() == self.value.lower()
        elif self.op == "!=":
            hit = actual.lower() != self.value.lower()
        elif self.op == "*=":
            hit = self.value.lower() in actual.lower()
        else:
            hit = bool(self.regex and self.regex.search(actual))
        return not hit if self.negate else hit


@dataclass(frozen=True)
class FilterExpression:
    """Disjunction of conjunctions of terms."""

    source: str
    clauses: tuple

    def matches(self, get: Getter) -> bool:
        return any(all(t.matches(get) for t in clause) for clause in self.clauses)


def _compile_regex(expression: str, raw: str) -> Pattern[str]:
    flags = 0
    pattern = raw
    m = re.fullmatch(r"/(.*)/([imsx]*)", raw, re.DOTALL)
    if m:
        pattern = m.group(1)
        for ch in m.group(2):
            flags |= {"i": re.I, "m": re.M, "s": re.S, "x": re.X}[ch]
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise FilterSyntaxError(expression, f"bad regular expression {raw!r}: {e}") from e


def _parse_term(expression: str, text: str, default_field: str) -> FilterTerm:
    text = text.strip()
    if not text:
        raise FilterSyntaxError(expression, "empty term")
    m = _TERM_RE.match(text)
    if not m:
        raise FilterSyntaxError(expression, f"cannot parse term {text!r}")
    field = m.group("field") or default_field
    op = m.group("op") or "="
    value = m.group("value").strip()
    if m.group("neg") and not m.group("field") and not value:
        raise FilterSyntaxError(expression, "negation without a term")
    regex = _compile_regex(expression, value) if op == "~=" else None
    return FilterTerm(field=field, op=op, value=value, negate=bool(m.group("neg")), regex=regex)


def _split_terms(text: str, sep: str) -> List[str]:
    """Split ``text`` on ``sep``, except inside a slash-delimited regex value."""
    parts: List[str] = []
    start = i = 0
    while i < len(text):
        m = _REGEX_VALUE_RE.match(text, i)
        if m:
            i = m.end()
            while i < len(text) and text[i] != "/":
                i += 2 if text[i] == "\\" else 1
            i += 1
        elif text.startswith(sep, i):
            parts.append(text[start:i])
            i += len(sep)
            start = i
        else:
            i += 1
    parts.append(text[start:])
    return parts


def parse_filter(expression: str, default_field: str) -> FilterExpression:
    if expression is None or not expression.strip():
        raise FilterSyntaxError(expression or "", "empty expression")
    clauses = []
    for disjunct in _split_terms(expression, "||"):
        terms = tuple(_parse_term(expression, part, default_field) for part in _split_terms(disjunct, "&&"))
        clauses.append(terms)
    return FilterExpression(source=expression, clauses=tuple(clauses))


def filter_sites(sites: Iterable[Site], expression: Optional[str], default_field: str = "name") -> List[Site]:
    """Return the sites matching ``expression``, keeping their order."""
    sites = list(sites)
    if not expression:
        return sites
    expr = parse_filter(expression, default_field)
    return [s for s in sites if expr.matches(s.field_value)]


def _row_getter(row: Mapping[str, Any]) -> Getter:
    def get(field: str) -> Optional[str]:
        if field not in row:
            return None
        v = row[field]
        return "" if v is None else str(v)
    return get


def filter_rows(rows: Iterable[Mapping[str, Any]], expression: Optional[str], default_field: str = "result") -> List[Mapping[str, Any]]:
    rows = list(rows)
    if not expression:
        return rows
    expr = parse_filter(expression, default_field)
    return [r for r in rows if expr.matches(_row_getter(r))]
