import pytest
from datetime import date, datetime

from evv_service.scheduling.bulk import (
    calculate_bulk_units,
    calculate_hours_between,
    combine_date_time,
    generate_bulk_dates,
    intervals_overlap,
    parse_time,
    sunday_based_weekday,
)


def test_sunday_based_weekday():
    """Test 0=Sunday numbering."""
    assert sunday_based_weekday(date(2024, 1, 7)) == 0  # Sunday
    assert sunday_based_weekday(date(2024, 1, 8)) == 1  # Monday
    assert sunday_based_weekday(date(2024, 1, 13)) == 6  # Saturday


def test_generate_dates_over_two_weeks():
    """Test Mondays and Wednesdays for two weeks from a Monday."""
    dates = generate_bulk_dates(date(2024, 1, 1), 2, [1, 3])

    assert dates == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10)]


def test_generate_dates_from_midweek_start():
    """Test that each week is the 7 days starting at start_date + 7*i."""
    # Wednesday 2024-01-03: week one runs Wed 3rd .. Tue 9th
    dates = generate_bulk_dates(date(2024, 1, 3), 1, [1, 3])

    assert dates == [date(2024, 1, 3), date(2024, 1, 8)]


def test_generate_dates_sunday():
    """Test that 0 selects Sundays."""
    assert generate_bulk_dates(date(2024, 1, 1), 1, [0]) == [date(2024, 1, 7)]


def test_generate_dates_every_day():
    """Test one date per selected weekday per week."""
    dates = generate_bulk_dates(date(2024, 2, 26), 3, range(7))

    assert len(dates) == 21
    assert dates == sorted(set(dates))
    assert date(2024, 2, 29) in dates


def test_generate_dates_ignores_duplicate_days():
    """Test that repeated weekdays do not repeat dates."""
    assert generate_bulk_dates(date(2024, 1, 1), 2, [3, 1, 1]) == generate_bulk_dates(date(2024, 1, 1), 2, [1, 3])


@pytest.mark.parametrize("weeks, days", [(0, [1]), (-1, [1]), (1, [7]), (1, [-1])])
def test_generate_dates_invalid_input(weeks, days):
    """Test rejected week counts and weekdays."""
    with pytest.raises(ValueError):
        generate_bulk_dates(date(2024, 1, 1), weeks, days)


def test_generate_dates_no_days():
    """Test an empty weekday selection."""
    assert generate_bulk_dates(date(2024, 1, 1), 4, []) == []


@pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "noon", ""])
def test_parse_time_invalid(value):
    """Test rejected HH:MM strings."""
    with pytest.raises(ValueError):
        parse_time(value)


def test_hours_between():
    """Test decimal hours between two wall-clock times."""
    assert calculate_hours_between("09:00", "13:30") == 4.5
    assert calculate_hours_between("13:00", "09:00") == -4.0
    assert calculate_hours_between("09:00", "09:00") == 0


def test_combine_date_time_utc():
    """Test local date and time in UTC."""
    assert combine_date_time(date(2024, 1, 8), "09:00", "UTC") == datetime(2024, 1, 8, 9, 0)


def test_combine_date_time_follows_daylight_saving():
    """Test that agency-local times map to UTC with the right offset."""
    assert combine_date_time(date(2024, 1, 8), "09:00", "America/New_York") == datetime(2024, 1, 8, 14, 0)
    assert combine_date_time(date(2024, 7, 8), "09:00", "America/New_York") == datetime(2024, 7, 8, 13, 0)


@pytest.mark.parametrize("hours, count, unit_type, expected", [
    (4, 5, "HOURLY", 20.0),
    (4, 5, "QUARTER_HOURLY", 80.0),
    (4, 5, "DAILY", 5.0),
    (9.5, 5, "DAILY", 5.0),
    (1 / 3, 3, "HOURLY", 1.0),
    (1 / 3, 1, "HOURLY", 0.33),
    (4, 0, "QUARTER_HOURLY", 0.0),
])
def test_bulk_units(hours, count, unit_type, expected):
    """Test unit consumption per authorization unit type."""
    assert calculate_bulk_units(hours, count, unit_type) == expected


def test_bulk_units_unknown_type():
    """Test an unknown unit type."""
    with pytest.raises(ValueError):
        calculate_bulk_units(4, 1, "WEEKLY")


def at(hour, minute=0):
    return datetime(2024, 1, 8, hour, minute)


@pytest.mark.parametrize("a, b, overlaps", [
    ((at(10), at(12)), (at(12), at(14)), False),
    ((at(11, 59), at(12, 1)), (at(12), at(14)), True),
    ((at(9), at(17)), (at(12), at(13)), True),
    ((at(10), at(12)), (at(10), at(12)), True),
    ((at(8), at(9)), (at(12), at(14)), False),
])
def test_intervals_overlap(a, b, overlaps):
    """Test half-open interval overlap in both argument orders."""
    assert intervals_overlap(*a, *b) is overlaps
    assert intervals_overlap(*b, *a) is overlaps
