"""Recurrence matching for alarm definitions.

The three occurrence rules on an alarm (specific dates, an inclusive date
range and weekly repeat days) are evaluated independently and OR'd together.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List

from .storage import AlarmDefinition


def weekday_of(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def matches(alarm: AlarmDefinition, day: date) -> bool:
    if day in alarm.specific_dates:
        return True
    if alarm.date_range is not None and alarm.date_range.contains(day):
        return True
    return weekday_of(day) in alarm.repeat_days


def alarms_on_date(alarms: Iterable[AlarmDefinition], day: date) -> List[AlarmDefinition]:
    # Listings keep disabled alarms; only triggering ignores them.
    return sorted((a for a in alarms if matches(a, day)), key=lambda a: a.time_of_day)
