"""``%{...}`` templating for destination paths and message formats.

Supported references:

- ``%{name}``: a top-level event field.
- ``%{[a][b]}``: a nested field.
- ``%{+yyyy-MM-dd}``: the event timestamp (UTC) in Joda-style notation.
- ``%{+%s}``: the event timestamp as epoch seconds.

Missing fields render as an empty string.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

_REFERENCE = re.compile(r"%\{([^}]+)\}")
_NESTED = re.compile(r"\[([^\]]+)\]")
# Quoted literal ('' is an escaped quote), a run of one pattern letter, or
# anything else verbatim.
_JODA_TOKEN = re.compile(r"'(?:[^']|'')*'|([A-Za-z])\1*|[^A-Za-z']+")


def _lookup(fields: Mapping[str, Any], ref: str) -> Any:
    if not ref.startswith("["):
        return fields.get(ref)
    value: Any = fields
    for part in _NESTED.findall(ref):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _joda_token(token: str, ts: datetime) -> str:
    letter, width = token[0], len(token)
    if letter in ("y", "Y"):
        return f"{ts.year % 100:02d}" if width == 2 else f"{ts.year:0{width}d}"
    if letter == "M":
        if width >= 4:
            return ts.strftime("%B")
        if width == 3:
            return ts.strftime("%b")
        return f"{ts.month:0{width}d}"
    if letter == "d":
        return f"{ts.day:0{width}d}"
    if letter == "D":
        return f"{ts.timetuple().tm_yday:0{width}d}"
    if letter == "H":
        return f"{ts.hour:0{width}d}"
    if letter == "h":
        return f"{(ts.hour % 12) or 12:0{width}d}"
    if letter == "m":
        return f"{ts.minute:0{width}d}"
    if letter == "s":
        return f"{ts.second:0{width}d}"
    if letter == "S":
        # Fraction of second, truncated to the requested precision.
        return f"{ts.microsecond:06d}"[:width].ljust(width, "0")
    if letter == "a":
        return "AM" if ts.hour < 12 else "PM"
    if letter == "E":
        return ts.strftime("%A") if width >= 4 else ts.strftime("%a")
    if letter == "Z":
        return "+0000"
    msg = f"Unsupported date pattern letter '{letter}'"
    raise ValueError(msg)


def _as_utc(ts: datetime) -> datetime:
    # Naive timestamps are taken to be UTC already.
    return ts.astimezone(UTC) if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


def format_joda(pattern: str, ts: datetime) -> str:
    """Format *ts* (converted to UTC) with a Joda-style *pattern*."""
    ts = _as_utc(ts)
    out: list[str] = []
    for match in _JODA_TOKEN.finditer(pattern):
        token = match.group(0)
        if token.startswith("'"):
            out.append(token[1:-1].replace("''", "'") if token != "''" else "'")
        elif match.group(1):
            out.append(_joda_token(token, ts))
        else:
            out.append(token)
    return "".join(out)


class PathTemplate:
    """A compiled ``%{...}`` template."""

    def __init__(self, template: str) -> None:
        self._template = template
        for ref in _REFERENCE.findall(template):
            if ref.startswith("+") and ref != "+%s":
                # Validate date patterns up front so bad config fails early.
                format_joda(ref[1:], datetime(2000, 1, 1, tzinfo=UTC))

    def fields(self) -> list[str]:
        """Field references (excluding date patterns) in template order."""
        refs = _REFERENCE.findall(self._template)
        return [ref for ref in refs if not ref.startswith("+")]

    def resolve(self, fields: Mapping[str, Any], timestamp: datetime) -> str:
        timestamp = _as_utc(timestamp)

        def _replace(match: re.Match[str]) -> str:
            ref = match.group(1)
            if ref == "+%s":
                return str(int(timestamp.timestamp()))
            if ref.startswith("+"):
                return format_joda(ref[1:], timestamp)
            return _render_value(_lookup(fields, ref))

        return _REFERENCE.sub(_replace, self._template)

    def __repr__(self) -> str:
        return f"PathTemplate({self._template!r})"
