from datetime import date

import pytest

from scheduleme.utils.dates import (
    add_minutes, parse_date, shift_date, start_of_week, time_to_minutes, week_days,
)


def test_start_of_week_is_monday():
    # 2024-01-01 is a Monday
    assert start_of_week(date(2024, 1, 3)) == date(2024, 1, 1)
    assert start_of_week(date(2024, 1, 1)) == date(2024, 1, 1)


def test_sunday_belongs_to_previous_monday():
    assert start_of_week(date(2024, 1, 7)) == date(2024, 1, 1)


def test_week_offset_moves_whole_weeks():
    assert start_of_week(date(2024, 1, 3), offset=-1) == date(2023, 12, 25)
    assert start_of_week(date(2024, 1, 3), offset=2) == date(2024, 1, 15)


def test_week_days_are_monday_to_saturday():
    days = week_days(date(2024, 1, 4))
    assert len(days) == 6
    assert days[0] == date(2024, 1, 1)
    assert days[-1] == date(2024, 1, 6)


def test_add_minutes_wraps_midnight():
    assert add_minutes("09:00", 45) == "09:45"
    assert add_minutes("09:30", 45) == "10:15"
    assert add_minutes("23:30", 45) == "00:15"


@pytest.mark.parametrize("bad", ["9:00", "24:00", "12:60", "", "noon"])
def test_time_to_minutes_rejects_malformed(bad):
    with pytest.raises(ValueError):
        time_to_minutes(bad)


def test_parse_date_rejects_malformed():
    assert parse_date("2024-02-29") == date(2024, 2, 29)
    for bad in ("2024-1-01", "2023-02-29", "01/02/2024"):
        with pytest.raises(ValueError):
            parse_date(bad)


def test_shift_date_crosses_month():
    assert shift_date("2024-01-29", 7) == "2024-02-05"


def test_out_of_range_weeks_raise_value_error():
    with pytest.raises(ValueError):
        start_of_week(date(2024, 1, 3), offset=1_000_000)
    # 9999-12-31 is a Friday, so its Saturday falls past date.max
    with pytest.raises(ValueError):
        week_days(date(9999, 12, 31))
    with pytest.raises(ValueError):
        shift_date("9999-12-30", 7)
