import datetime as dt

import pytest

from raidboard_api.errors import InvalidDateError
from raidboard_api.services.windows import (
    TimeWindow,
    current_day_start,
    format_civil,
    parse_civil_date,
    resolve_window,
    rolling_window,
    today_civil_date,
)


def utc(*args) -> dt.datetime:
    return dt.datetime(*args, tzinfo=dt.UTC)


def test_day_window_starts_at_civil_five_am():
    window = resolve_window("day", "2025-12-25")
    assert window.start_utc == utc(2025, 12, 24, 20, 0)
    assert window.end_utc == utc(2025, 12, 25, 20, 0)


def test_month_window_rolls_into_next_year():
    window = resolve_window("month", "2025-12-25")
    assert window.start_utc == utc(2025, 11, 30, 20, 0)
    assert window.end_utc == utc(2025, 12, 31, 20, 0)
    assert format_civil(window.start_utc) == "2025/12/01 05:00"
    assert format_civil(window.end_utc) == "2026/01/01 05:00"


def test_month_window_mid_year():
    window = resolve_window("month", "2024-02-10")
    assert format_civil(window.start_utc) == "2024/02/01 05:00"
    assert format_civil(window.end_utc) == "2024/03/01 05:00"
    assert window.days == 29


@pytest.mark.parametrize("date", ["2025-12-22", "2025-12-25", "2025-12-28"])
def test_week_window_starts_monday(date):
    window = resolve_window("week", date)
    # 2025-12-22 is a Monday.
    assert window.start_utc == utc(2025, 12, 21, 20, 0)
    assert window.end_utc - window.start_utc == dt.timedelta(days=7)


def test_week_window_crosses_month_boundary():
    window = resolve_window("week", "2026-01-01")
    assert format_civil(window.start_utc) == "2025/12/29 05:00"


def test_out_of_month_day_rolls_forward():
    window = resolve_window("day", "2025-02-31")
    assert format_civil(window.start_utc) == "2025/03/03 05:00"


@pytest.mark.parametrize("value", ["", "2025-1-01", "2025-13-01", "2025-00-10", "2025-12-32", "0000-01-01", "garbage"])
def test_invalid_dates(value):
    with pytest.raises(InvalidDateError):
        resolve_window("day", value)


@pytest.mark.parametrize(
    ("period", "value"),
    [("month", "9999-12-15"), ("day", "0001-01-01"), ("week", "0001-01-03")],
)
def test_dates_at_the_datetime_limits_are_invalid(period, value):
    with pytest.raises(InvalidDateError):
        resolve_window(period, value)


def test_unknown_period_is_rejected():
    with pytest.raises(ValueError):
        resolve_window("year", "2025-12-25")


def test_invalid_date_is_a_value_error():
    with pytest.raises(ValueError):
        parse_civil_date("2025/12/25")


def test_window_is_half_open():
    window = resolve_window("day", "2025-12-25")
    assert window.contains(utc(2025, 12, 24, 20, 0))
    assert not window.contains(utc(2025, 12, 25, 20, 0))


def test_window_rejects_empty_interval():
    with pytest.raises(ValueError):
        TimeWindow(utc(2025, 1, 1), utc(2025, 1, 1))


def test_current_day_start_before_and_after_cutover():
    # 04:30 civil time still belongs to the previous civil day.
    assert current_day_start(utc(2025, 12, 24, 19, 30)) == utc(2025, 12, 23, 20, 0)
    assert current_day_start(utc(2025, 12, 24, 20, 30)) == utc(2025, 12, 24, 20, 0)


def test_rolling_window_covers_current_civil_day():
    window = rolling_window(7, now=utc(2025, 12, 25, 3, 0))
    assert window.end_utc == utc(2025, 12, 25, 20, 0)
    assert window.start_utc == utc(2025, 12, 18, 20, 0)
    with pytest.raises(ValueError):
        rolling_window(0)


def test_today_civil_date():
    assert today_civil_date(utc(2025, 12, 24, 16, 0)) == "2025-12-25"
    assert today_civil_date(utc(2025, 12, 24, 14, 59)) == "2025-12-24"


def test_label():
    window = resolve_window("day", "2025-12-25")
    assert window.label() == "2025/12/25 05:00 ～ 2025/12/26 04:59"
