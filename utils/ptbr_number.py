"""Parsing and formatting of numbers written in pt-BR or en-US style.

Every number read from a spreadsheet cell goes through :func:`parse_ptbr_number`.

Supported examples::

    "6,56"      -> 6.56
    "6.566,90"  -> 6566.9
    "1.234,56"  -> 1234.56   (pt-BR: dot thousands, comma decimal)
    "1,234.56"  -> 1234.56   (en-US: comma thousands, dot decimal)
    "5.127"     -> 5127      (single dot + three digits is a thousands separator)
    "180.072"   -> 180072
    "89.00"     -> 89.0
    1234.56     -> 1234.56   (numbers pass through)

Horimeter and fuel values are integers or carry one or two decimals, so a single
dot followed by three or more digits is read as a thousands separator.
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional

_SPACES_RE = re.compile(r"[\s ]")
_STRIP_RE = re.compile(r"[^0-9.\-]")
_DIGITS_RE = re.compile(r"^\d+$")


def parse_ptbr_number(value: Any) -> float:
    """Coerce a cell value to ``float``; blanks and garbage become ``0.0``."""

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = _SPACES_RE.sub("", str(value).strip())
    if not text:
        return 0.0

    dots = text.count(".")
    commas = text.count(",")

    if dots and commas:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".", 1)
        else:
            text = text.replace(",", "")
    elif commas:
        text = text.replace(",", ".")
    elif dots > 1:
        text = text.replace(".", "")
    elif dots == 1:
        before, _, after = text.partition(".")
        if len(after) >= 3 and _DIGITS_RE.match(after) and before:
            text = before + after

    text = _STRIP_RE.sub("", text)
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def format_ptbr_number(value: Optional[float], decimals: Optional[int] = None) -> str:
    """Format ``value`` as pt-BR text (``1.234,56``); ``-`` for missing values."""

    if value is None:
        return "-"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "-"
    if not math.isfinite(number):
        return "-"

    if decimals is None:
        decimals = 0 if number.is_integer() else 2
    rendered = f"{number:,.{decimals}f}"
    return rendered.replace(",", "\x00").replace(".", ",").replace("\x00", ".")


def format_sheet_number(value: Any) -> str:
    """Two-decimal pt-BR text for positive values, blank otherwise."""

    number = parse_ptbr_number(value)
    return format_ptbr_number(number, decimals=2) if number > 0 else ""


__all__ = ["format_ptbr_number", "format_sheet_number", "parse_ptbr_number"]
