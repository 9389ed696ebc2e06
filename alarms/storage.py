from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class AlarmKind(str, Enum):
    ALARM = "alarm"
    EVENT = "event"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class AlarmDefinition:
    id: str
    time_of_day: str
    label: str
    description: str = ""
    end_time_of_day: Optional[str] = None
    specific_dates: Set[date] = field(default_factory=set)
    date_range: Optional[DateRange] = None
    repeat_days: Set[int] = field(default_factory=set)
    is_enabled: bool = True
    sound_id: str = "classic"
    narration_enabled: bool = False
    kind: AlarmKind = AlarmKind.ALARM

    def __post_init__(self) -> None:
        if not _TIME_RE.match(self.time_of_day):
            raise ValueError(f"Alarm time must be HH:MM, got {self.time_of_day!r}")
        if self.end_time_of_day and not _TIME_RE.match(self.end_time_of_day):
            raise ValueError(f"Alarm end time must be HH:MM, got {self.end_time_of_day!r}")
        bad_days = [d for d in self.repeat_days if not 0 <= d <= 6]
        if bad_days:
            raise ValueError(f"Repeat days must be in 0..6 (0=Sunday), got {sorted(bad_days)}")
        self.specific_dates = set(self.specific_dates)
        self.repeat_days = set(self.repeat_days)
        self.kind = AlarmKind(self.kind)

    @property
    def has_occurrence_rule(self) -> bool:
        return bool(self.specific_dates or self.date_range or self.repeat_days)

    def with_changes(self, **changes) -> "AlarmDefinition":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        payload = {
            "id": self.id,
            "time": self.time_of_day,
            "label": self.label,
            "description": self.description,
            "isEnabled": self.is_enabled,
            "soundId": self.sound_id,
            "isAiEnabled": self.narration_enabled,
            "type": self.kind.value,
        }
        if self.end_time_of_day:
            payload["endTime"] = self.end_time_of_day
        if self.specific_dates:
            payload["specificDates"] = sorted(d.isoformat() for d in self.specific_dates)
        if self.date_range:
            payload["dateRange"] = {
                "from": self.date_range.start.isoformat(),
                "to": self.date_range.end.isoformat(),
            }
        if self.repeat_days:
            payload["repeatDays"] = sorted(self.repeat_days)
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "AlarmDefinition":
        time_raw = data.get("time")
        if not time_raw:
            raise ValueError("Alarm payload missing time field")
        range_raw = data.get("dateRange") or None
        date_range = None
        if range_raw:
            date_range = DateRange(
                start=date.fromisoformat(range_raw["from"]),
                end=date.fromisoformat(range_raw["to"]),
            )
        return cls(
            id=str(data.get("id") or new_alarm_id()),
            time_of_day=str(time_raw),
            end_time_of_day=data.get("endTime") or None,
            label=str(data.get("label") or "Alarm"),
            description=str(data.get("description") or ""),
            specific_dates={date.fromisoformat(d) for d in data.get("specificDates") or []},
            date_range=date_range,
            repeat_days={int(d) for d in data.get("repeatDays") or []},
            is_enabled=bool(data.get("isEnabled", True)),
            sound_id=str(data.get("soundId") or "classic"),
            narration_enabled=bool(data.get("isAiEnabled", False)),
            kind=AlarmKind(data.get("type") or AlarmKind.ALARM.value),
        )


def new_alarm_id() -> str:
    return f"al_{uuid.uuid4().hex[:8]}"


def load_alarms(path: Path) -> List[AlarmDefinition]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as exc:  # pragma: no cover - corrupted file
        logger.error("Failed to load alarms from %s: %s", path, exc)
        return []
    alarms: List[AlarmDefinition] = []
    for item in payload or []:
        try:
            alarms.append(AlarmDefinition.from_dict(item))
        except Exception as exc:
            logger.warning("Skipping alarm item due to parse error: %s", exc)
    return alarms


def save_alarms(path: Path, alarms: List[AlarmDefinition]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    serializable = [a.to_dict() for a in alarms]
    with path.open("w", encoding="utf-8") as f:
        json.dump(serializable, f, ensure_ascii=False, indent=2)


class JsonAlarmStorage:
    """Durable alarm records kept in a single JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_alarms(self) -> List[AlarmDefinition]:
        return load_alarms(self.path)

    def save_alarms(self, alarms: List[AlarmDefinition]) -> None:
        save_alarms(self.path, alarms)
