"""Tests for the cron due-window check."""

from datetime import datetime, timedelta, timezone

import pytest

from autonomy.strategy_engine import is_due

MIDNIGHT = datetime(2024, 3, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(seconds=0), True),
        (timedelta(seconds=59), True),
        (timedelta(seconds=59, microseconds=999999), True),
        (timedelta(minutes=1, seconds=5), True),
    ],
)
def test_every_minute_schedule(offset, expected):
    assert is_due("*/1 * * * *", MIDNIGHT + offset) is expected


def test_daily_schedule_window():
    assert is_due("0 0 * * *", MIDNIGHT)
    assert is_due("0 0 * * *", MIDNIGHT + timedelta(seconds=59))
    assert not is_due("0 0 * * *", MIDNIGHT + timedelta(seconds=60))
    assert not is_due("0 0 * * *", MIDNIGHT - timedelta(seconds=1))


def test_previous_minute_not_due_after_window():
    # fires at :05 only; 00:06:00 is exactly one window past the fire
    assert is_due("5 * * * *", MIDNIGHT + timedelta(minutes=5, seconds=30))
    assert not is_due("5 * * * *", MIDNIGHT + timedelta(minutes=6))


def test_naive_datetime_treated_as_utc():
    assert is_due("0 0 * * *", datetime(2024, 3, 1, 0, 0, 30))


@pytest.mark.parametrize("schedule", ["not a cron", "61 * * * *", "* * * *", ""])
def test_malformed_schedule_is_not_due(schedule):
    assert is_due(schedule, MIDNIGHT) is False


# ------------------------------------------------------------------
# Day-of-week numbering (0 and 7 are Sunday)
# ------------------------------------------------------------------

SUNDAY_NOON = datetime(2024, 3, 3, 12, 0, tzinfo=timezone.utc)
MONDAY_NOON = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)
TUESDAY_NOON = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


def test_numeric_monday():
    assert is_due("0 12 * * 1", MONDAY_NOON)
    assert not is_due("0 12 * * 1", TUESDAY_NOON)
    assert not is_due("0 12 * * 1", SUNDAY_NOON)


@pytest.mark.parametrize("weekday", ["0", "7", "sun"])
def test_sunday_spellings(weekday):
    assert is_due(f"0 12 * * {weekday}", SUNDAY_NOON)
    assert not is_due(f"0 12 * * {weekday}", MONDAY_NOON)


@pytest.mark.parametrize(
    "weekdays, due_on",
    [
        ("1-5", [MONDAY_NOON, TUESDAY_NOON]),
        ("5-7", [SUNDAY_NOON]),
        ("0,2", [SUNDAY_NOON, TUESDAY_NOON]),
        ("*/2", [SUNDAY_NOON, TUESDAY_NOON]),
        ("mon-fri", [MONDAY_NOON, TUESDAY_NOON]),
    ],
)
def test_weekday_lists_and_ranges(weekdays, due_on):
    for moment in (SUNDAY_NOON, MONDAY_NOON, TUESDAY_NOON):
        assert is_due(f"0 12 * * {weekdays}", moment) is (moment in due_on)


@pytest.mark.parametrize("weekdays", ["8", "5-3", "*/0"])
def test_invalid_weekday_is_not_due(weekdays):
    assert is_due(f"0 12 * * {weekdays}", MONDAY_NOON) is False
