"""
Aduan Row Parser

Line-level helpers for the published spreadsheet exports.

RULES:
- Never raise on a bad row. A malformed row degrades to empty fields.
- Row 0 of every feed is a header and is always skipped.
- Dates are displayed as DD/MM/YYYY. Anything that does not look like a
  d/m/y token is passed through untouched.

Public API:
  split_feed_lines(text) -> list[str]
  parse_row(line) -> list[str]
  field_at(fields, index) -> str
  normalize_date(raw, ambiguous_order=None) -> str
  month_bucket(display_date) -> Optional[str]
  today_display(today=None) -> str
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Optional

from aduan import config

logger = logging.getLogger(__name__)

# One field: a quoted span (non-greedy) or a run of non-comma characters,
# followed by a comma or end of line.
_FIELD_PATTERN = re.compile(r'\s*(".*?"|[^",]*)\s*(,|$)')

# Time-of-day (or anything else) starts at the first space or comma.
_DATE_CUTOFF = re.compile(r"[ ,]")


# ---------------------------------------------------------------------------
# Feed lines
# ---------------------------------------------------------------------------


def split_feed_lines(text: str) -> list[str]:
    """Trimmed, non-empty data lines of a feed, header row removed."""
    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]
    return lines[1:]


def _clean(field: str) -> str:
    field = field.strip()
    if len(field) >= 2 and field.startswith('"') and field.endswith('"'):
        return field[1:-1].replace('""', '"').strip()
    return re.sub(r'^"|"$', "", field).strip()


def _tokenize(line: str) -> Optional[list[str]]:
    """Pattern-based split; None when the line cannot be tokenized."""
    tokens: list[str] = []
    pos = 0
    while True:
        match = _FIELD_PATTERN.match(line, pos)
        if match is None:
            return None
        tokens.append(match.group(1))
        if match.group(2) != ",":
            return tokens
        pos = match.end()


def parse_row(line: str) -> list[str]:
    """
    Split one CSV line into unquoted, trimmed fields.

    Commas inside double-quoted fields are kept. Empty fields keep their
    position so later columns do not shift. Lines the pattern cannot
    tokenize (stray quotes) fall back to a plain comma split.
    """
    tokens = _tokenize(line)
    if tokens is None:
        logger.debug("[row_parser] pattern did not match, naive split: %r", line)
        tokens = line.split(",")
    return [_clean(token) for token in tokens]


def field_at(fields: list[str], index: int) -> str:
    """Field by position; missing columns read as empty."""
    if 0 <= index < len(fields):
        return fields[index]
    return ""


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def normalize_date(raw: str, ambiguous_order: Optional[str] = None) -> str:
    """
    Canonicalize a loose date token to DD/MM/YYYY.

    "2/25/2026, 08:00:00" -> "25/02/2026"  (second part > 12: month first)
    "25/2/2026"           -> "25/02/2026"
    "3/4/2026"            -> "03/04/2026" with DMY, "04/03/2026" with MDY
    "2026-02-25"          -> "2026-02-25"  (not d/m/y, passthrough)
    """
    if not raw:
        return ""
    order = (ambiguous_order or config.DATE_ORDER).upper()
    try:
        date_part = _DATE_CUTOFF.split(raw.strip(), maxsplit=1)[0]
        parts = date_part.split("/")
        if len(parts) != 3 or not all(part.isdigit() for part in parts):
            return raw

        first, second, year = parts
        first_value, second_value = int(first), int(second)

        if first_value <= 12 and second_value > 12:
            month, day = first, second
        elif first_value <= 12 and second_value <= 12 and order == "MDY":
            month, day = first, second
        else:
            day, month = first, second

        return f"{day.zfill(2)}/{month.zfill(2)}/{year}"
    except (ValueError, TypeError, AttributeError):
        return raw


def month_bucket(display_date: str) -> Optional[str]:
    """MM/YYYY bucket for a DD/MM/YYYY date, None when it is not one."""
    if not display_date:
        return None
    parts = display_date.split(",")[0].strip().split("/")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None
    return f"{parts[1].zfill(2)}/{parts[2]}"


def today_display(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%d/%m/%Y")
