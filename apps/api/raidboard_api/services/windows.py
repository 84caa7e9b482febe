"""
Ranking periods on the civil-day convention: a day starts at 05:00 in UTC+9,
so late-night activity stays in the same bucket as the evening before it.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Literal

from ..errors import InvalidDateError

RankingPeriod = Literal["day", "week", "month"]

CIVIL_TZ = dt.timezone(dt.timedelta(hours=9))
DAY_START_HOUR = 5

_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start_utc, end_utc)."""

    start_utc: dt.datetime
    end_utc: dt.datetime

    def __post_init__(self) -> None:
        if not self.start_utc < self.end_utc:
            raise ValueError("window start must be before its end")

    @property
    def days(self) -> float:
        return (self.end_utc - self.start_utc) / dt.timedelta(days=1)

    def contains(self, instant: dt.datetime) -> bool:
        return self.start_utc <= instant < self.end_utc

    def label(self) -> str:
        last = self.end_utc - dt.timedelta(milliseconds=1)
        return f"{format_civil(self.start_utc)} ～ {format_civil(last)}"


def parse_civil_date(value: str) -> tuple[int, int, int]:
    """Parse YYYY-MM-DD with range checks only; 2025-02-31 is accepted and rolls forward."""
    match = _YMD_RE.match((value or "").strip())
    if not match:
        raise InvalidDateError(value)
    year, month, day = (int(part) for part in match.groups())
    if not year or not 1 <= month <= 12 or not 1 <= day <= 31:
        raise InvalidDateError(value)
    return year, month, day


def _civil_instant(year: int, month: int, day: int, hour: int = DAY_START_HOUR) -> dt.datetime:
    # Day offsets are added rather than passed to datetime() so out-of-month days roll over.
    local = dt.datetime(year, month, 1, hour, tzinfo=CIVIL_TZ) + dt.timedelta(days=day - 1)
    return local.astimezone(dt.UTC)


def resolve_window(period: RankingPeriod, civil_date: str) -> TimeWindow:
    if period not in ("day", "week", "month"):
        raise ValueError(f"unknown ranking period: {period}")
    year, month, day = parse_civil_date(civil_date)
    try:
        return _period_window(period, year, month, day)
    except (ValueError, OverflowError) as exc:
        # Dates at the edge of the datetime range pass the parser but not the arithmetic.
        raise InvalidDateError(civil_date) from exc


def _period_window(period: RankingPeriod, year: int, month: int, day: int) -> TimeWindow:
    if period == "day":
        start = _civil_instant(year, month, day)
        return TimeWindow(start, start + dt.timedelta(days=1))

    if period == "week":
        # Weekday is read at civil noon, well clear of the 05:00 boundary.
        weekday = _civil_instant(year, month, day, hour=12).astimezone(CIVIL_TZ).weekday()
        start = _civil_instant(year, month, day) - dt.timedelta(days=weekday)
        return TimeWindow(start, start + dt.timedelta(days=7))

    next_year, next_month = (year + 1, 1) if month == 12 else (year, month + 1)
    return TimeWindow(_civil_instant(year, month, 1), _civil_instant(next_year, next_month, 1))


def current_day_start(now: dt.datetime | None = None) -> dt.datetime:
    """Most recent 05:00 civil boundary at or before `now`, in UTC."""
    now = now or dt.datetime.now(dt.UTC)
    local = now.astimezone(CIVIL_TZ)
    start = local.replace(hour=DAY_START_HOUR, minute=0, second=0, microsecond=0)
    if local < start:
        start -= dt.timedelta(days=1)
    return start.astimezone(dt.UTC)


def rolling_window(days: int, now: dt.datetime | None = None) -> TimeWindow:
    """The last `days` civil days, the current (possibly partial) one included."""
    if days < 1:
        raise ValueError("days must be at least 1")
    end = current_day_start(now) + dt.timedelta(days=1)
    return TimeWindow(end - dt.timedelta(days=days), end)


def today_civil_date(now: dt.datetime | None = None) -> str:
    local = (now or dt.datetime.now(dt.UTC)).astimezone(CIVIL_TZ)
    return local.strftime("%Y-%m-%d")


def format_civil(instant: dt.datetime) -> str:
    return instant.astimezone(CIVIL_TZ).strftime("%Y/%m/%d %H:%M")
