"""Date helpers for sheet cells and UTC timestamps."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

UTC = timezone.utc

_DMY_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")


def parse_sheet_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse a spreadsheet date cell into a ``date``.

    Accepts ``dd/mm/yyyy`` (also with ``-`` or ``.`` separators and an optional
    trailing time) and ISO ``yyyy-mm-dd`` with or without a time part.
    Returns ``None`` for anything else, including impossible calendar dates.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    match = _DMY_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
    else:
        match = _ISO_RE.match(text)
        if not match:
            return None
        year, month, day = (int(part) for part in match.groups())

    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_sheet_date(value: Union[str, date, None]) -> str:
    """Render a date the way the sheets store it (``dd/mm/yyyy``)."""

    parsed = parse_sheet_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return parsed.strftime("%d/%m/%Y")


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with a ``Z`` suffix and millisecond precision."""

    if dt is None:
        return None
    normalized = ensure_utc(dt)
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


__all__ = [
    "UTC",
    "ensure_utc",
    "format_sheet_date",
    "parse_iso",
    "parse_sheet_date",
    "to_iso",
    "utc_now",
]
