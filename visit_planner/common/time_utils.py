"""Date helpers for run metadata and business-day scheduling."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utc_today_iso() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def parse_run_date(value: str | None) -> str:
    if not value:
        return utc_today_iso()
    parsed = date.fromisoformat(value)
    return parsed.isoformat()


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def parse_iso_date(value) -> date | None:
    """Parse an ISO date (or the date part of an ISO datetime); None when unusable."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def add_business_days(start: date, days: int) -> date:
    """Move forward ``days`` weekdays from ``start``, skipping Saturday and Sunday."""
    current = start
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def format_display_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"
