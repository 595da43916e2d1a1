# Overview: UTC time helpers; instant parsing, wire formatting and calendar buckets.

from __future__ import annotations

import re
from datetime import date, datetime, timezone


_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    Read an ISO-8601 instant as a naive UTC datetime.

    Empty input gives None. Offsets (including a trailing "Z") are converted
    to UTC; input without an offset, or a bare date, is taken as UTC already.
    Raises ValueError when the text is not ISO-8601.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = f"{text[:-1]}+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: datetime | None) -> str | None:
    """Wire format: second precision, UTC, trailing "Z". Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def month_key(dt: datetime | date) -> str:
    """Calendar month bucket ("YYYY-MM") of a UTC-naive datetime."""
    return f"{dt.year:04d}-{dt.month:02d}"


def parse_month_key(value: str) -> tuple[int, int]:
    """
    Parse "YYYY-MM" into (year, month).

    Raises ValueError when the value is not a valid calendar month.
    """
    match = _MONTH_KEY_RE.match(value or "")
    if not match:
        raise ValueError(f"invalid month {value!r}, expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"invalid month {value!r}, expected YYYY-MM")
    return year, month


def month_range(year: int, month: int) -> tuple[datetime, datetime]:
    """Half-open UTC range [first instant of month, first instant of next month)."""
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def week_key(year: int, dt: datetime | date) -> str:
    """
    Week bucket inside a reporting year, e.g. "2026-W07".

    The number is the ISO-8601 week of `dt`; the prefix is always the
    reporting year, so 2027-01-01 (ISO week 53 of 2026) reads "2027-W53".
    """
    return f"{year:04d}-W{dt.isocalendar()[1]:02d}"
