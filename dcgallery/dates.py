from __future__ import annotations

import re
from datetime import date
from typing import Optional

_ISO_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_TIME_ONLY_RE = re.compile(r"^\d{2}:\d{2}$")
_MONTH_DAY_RE = re.compile(r"^(\d{2})\.(\d{2})$")
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def today_key(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%Y-%m-%d")


def normalize_date(text: Optional[str], today: Optional[date] = None) -> str:
    """
    Normalize listing date text to a YYYY-MM-DD key.

    Listing pages show:
    - "2024-01-05 14:32:10" (title attribute) -> "2024-01-05"
    - "14:32" for posts written today -> today's date (local clock)
    - "03.15" for posts of the current year -> "<year>-03-15"

    Anything else returns "" (cannot be placed in a date range).
    """
    if not text or not isinstance(text, str):
        return ""

    trimmed = text.strip()

    m = _ISO_PREFIX_RE.match(trimmed)
    if m:
        return m.group(0)

    if _TIME_ONLY_RE.match(trimmed):
        return today_key(today)

    m = _MONTH_DAY_RE.match(trimmed)
    if m:
        year = (today or date.today()).year
        return f"{year}-{m.group(1)}-{m.group(2)}"

    return ""


def is_date_in_range(
    text: Optional[str],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> bool:
    # Keys are fixed-width and zero padded, plain string comparison orders them.
    key = normalize_date(text, today)
    if not key:
        return False
    if start_date and key < start_date:
        return False
    if end_date and key > end_date:
        return False
    return True


def is_date_older(text: Optional[str], start_date: Optional[str], today: Optional[date] = None) -> bool:
    if not start_date:
        return False
    key = normalize_date(text, today)
    if not key:
        return False
    return key < start_date


def is_date_key(value: str) -> bool:
    """True for a real calendar date in canonical YYYY-MM-DD form."""
    if not isinstance(value, str) or not _DATE_KEY_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
