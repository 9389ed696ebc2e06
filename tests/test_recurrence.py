from datetime import date

import pytest

from alarms.recurrence import alarms_on_date, matches, weekday_of
from alarms.storage import AlarmDefinition, DateRange


def _alarm(**kwargs) -> AlarmDefinition:
    kwargs.setdefault("id", "al_test")
    kwargs.setdefault("time_of_day", "07:00")
    kwargs.setdefault("label", "Wake up")
    return AlarmDefinition(**kwargs)


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 3, 3), 0),  # Sunday
        (date(2024, 3, 4), 1),
        (date(2024, 3, 9), 6),
        (date(2024, 2, 29), 4),
        (date(2023, 12, 31), 0),
        (date(2024, 1, 1), 1),
    ],
)
def test_weekday_is_sunday_based(day, expected):
    assert weekday_of(day) == expected


def test_repeat_days_match_weekdays_only():
    alarm = _alarm(repeat_days={1, 2, 3, 4, 5})
    assert matches(alarm, date(2024, 3, 6))
    assert not matches(alarm, date(2024, 3, 9))
    assert not matches(alarm, date(2024, 3, 10))


def test_specific_date_matches_only_that_day():
    alarm = _alarm(specific_dates={date(2024, 3, 1)})
    assert matches(alarm, date(2024, 3, 1))
    assert not matches(alarm, date(2024, 3, 2))
    assert not matches(alarm, date(2025, 3, 1))


def test_date_range_is_inclusive():
    alarm = _alarm(date_range=DateRange(date(2024, 2, 27), date(2024, 3, 2)))
    assert not matches(alarm, date(2024, 2, 26))
    assert matches(alarm, date(2024, 2, 27))
    assert matches(alarm, date(2024, 2, 29))
    assert matches(alarm, date(2024, 3, 2))
    assert not matches(alarm, date(2024, 3, 3))


def test_rules_are_combined_with_or():
    alarm = _alarm(
        specific_dates={date(2024, 12, 25)},
        date_range=DateRange(date(2024, 7, 1), date(2024, 7, 3)),
        repeat_days={0},
    )
    assert matches(alarm, date(2024, 12, 25))  # Wednesday, specific date
    assert matches(alarm, date(2024, 7, 2))  # Tuesday, in range
    assert matches(alarm, date(2024, 3, 10))  # Sunday, repeat day
    assert not matches(alarm, date(2024, 3, 11))


def test_alarm_without_rules_never_matches():
    alarm = _alarm()
    assert not alarm.has_occurrence_rule
    for offset in range(7):
        assert not matches(alarm, date(2024, 3, 4 + offset))


def test_alarms_on_date_sorted_and_keeps_disabled():
    day = date(2024, 3, 6)
    late = _alarm(id="late", time_of_day="21:30", specific_dates={day})
    early = _alarm(id="early", time_of_day="06:15", repeat_days={3}, is_enabled=False)
    other = _alarm(id="other", specific_dates={date(2024, 3, 7)})

    listed = alarms_on_date([late, other, early], day)

    assert [a.id for a in listed] == ["early", "late"]
