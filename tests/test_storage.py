import json
from datetime import date

import pytest

from alarms.storage import AlarmDefinition, AlarmKind, DateRange, JsonAlarmStorage


def test_round_trip_keeps_every_field(tmp_path):
    storage = JsonAlarmStorage(tmp_path / "alarms.json")
    alarm = AlarmDefinition(
        id="al_1",
        time_of_day="07:45",
        end_time_of_day="08:30",
        label="Yoga",
        description="Studio B",
        specific_dates={date(2024, 3, 1)},
        date_range=DateRange(date(2024, 4, 1), date(2024, 4, 7)),
        repeat_days={0, 6},
        is_enabled=False,
        sound_id="zen",
        narration_enabled=True,
        kind=AlarmKind.EVENT,
    )

    storage.save_alarms([alarm])

    assert storage.load_alarms() == [alarm]


def test_wire_format_uses_camel_case(tmp_path):
    path = tmp_path / "alarms.json"
    alarm = AlarmDefinition(
        id="al_1",
        time_of_day="06:00",
        label="Run",
        date_range=DateRange(date(2024, 5, 1), date(2024, 5, 3)),
        repeat_days={5, 1},
    )
    JsonAlarmStorage(path).save_alarms([alarm])

    (record,) = json.loads(path.read_text(encoding="utf-8"))

    assert record["time"] == "06:00"
    assert record["repeatDays"] == [1, 5]
    assert record["dateRange"] == {"from": "2024-05-01", "to": "2024-05-03"}
    assert record["isEnabled"] is True
    assert record["isAiEnabled"] is False
    assert record["type"] == "alarm"
    assert "specificDates" not in record


def test_missing_file_loads_empty(tmp_path):
    assert JsonAlarmStorage(tmp_path / "missing.json").load_alarms() == []


def test_bad_records_are_skipped(tmp_path):
    path = tmp_path / "alarms.json"
    path.write_text(
        json.dumps(
            [
                {"id": "ok", "time": "09:00", "label": "Ok", "repeatDays": [1]},
                {"id": "no-time", "label": "Broken"},
                {"id": "bad-time", "time": "25:00"},
                {"id": "bad-day", "time": "09:00", "repeatDays": [7]},
            ]
        ),
        encoding="utf-8",
    )

    alarms = JsonAlarmStorage(path).load_alarms()

    assert [a.id for a in alarms] == ["ok"]


def test_defaults_for_sparse_record():
    alarm = AlarmDefinition.from_dict({"time": "10:30"})

    assert alarm.id.startswith("al_")
    assert alarm.label == "Alarm"
    assert alarm.sound_id == "classic"
    assert alarm.is_enabled
    assert alarm.kind is AlarmKind.ALARM
    assert not alarm.has_occurrence_rule


@pytest.mark.parametrize("bad", ["7:30", "24:00", "12:60", "noon", ""])
def test_invalid_time_is_rejected(bad):
    with pytest.raises(ValueError):
        AlarmDefinition(id="x", time_of_day=bad, label="x")


def test_with_changes_returns_new_definition():
    alarm = AlarmDefinition(id="x", time_of_day="07:00", label="Old", repeat_days={1})

    renamed = alarm.with_changes(label="New")

    assert renamed.label == "New"
    assert alarm.label == "Old"
    assert renamed.repeat_days == {1}
