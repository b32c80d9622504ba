"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, timedelta
from typing import Iterator

import pendulum

DEFAULT_TZ = "Asia/Kolkata"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz() -> date:
    return now_in_tz().date()


def parse_iso_date(value: str) -> date:
    return pendulum.parse(value).date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def shift_date(value: str, days: int) -> str:
    """Move an ISO date string by ``days`` calendar days."""
    return format_date(parse_iso_date(value) + timedelta(days=days))


def date_span(start: str, end: str) -> Iterator[str]:
    """Yield every ISO date from ``start`` to ``end`` inclusive."""
    current = parse_iso_date(start)
    last = parse_iso_date(end)
    while current <= last:
        yield format_date(current)
        current += timedelta(days=1)
