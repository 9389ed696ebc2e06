from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from .storage import AlarmDefinition, AlarmKind, new_alarm_id

logger = logging.getLogger(__name__)

_LOOSE_TIME_RE = re.compile(r"^\s*(\d{1,2})[:.](\d{2})\s*$")


class QuickAddError(Exception):
    pass


@dataclass
class QuickAddRequest:
    time_of_day: str
    label: str
    day: date
    raw_text: str = ""


def normalize_time(raw: str) -> Optional[str]:
    match = _LOOSE_TIME_RE.match(raw or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def parse_extraction(payload: dict, raw_text: str = "") -> QuickAddRequest:
    """Validate the ``{time, label, date}`` answer of the extraction model."""
    time_of_day = normalize_time(str(payload.get("time") or ""))
    if not time_of_day:
        raise QuickAddError(f"Could not understand the time in {payload.get('time')!r}")
    try:
        day = date.fromisoformat(str(payload.get("date") or ""))
    except ValueError as exc:
        raise QuickAddError(f"Could not understand the date in {payload.get('date')!r}") from exc
    label = str(payload.get("label") or "").strip() or raw_text.strip() or "Event"
    return QuickAddRequest(time_of_day=time_of_day, label=label, day=day, raw_text=raw_text)


class QuickAdd:
    def __init__(
        self,
        extract_fn: Callable[[str, date], dict],
        is_online: Callable[[], bool],
        default_sound_id: str = "classic",
    ):
        self.extract_fn = extract_fn
        self.is_online = is_online
        self.default_sound_id = default_sound_id

    def build_alarm(self, text: str, today: date) -> AlarmDefinition:
        cleaned = text.strip()
        if not cleaned:
            raise QuickAddError("Nothing to add")
        if not self.is_online():
            raise QuickAddError("Quick add requires an internet connection")
        try:
            payload = self.extract_fn(cleaned, today)
        except QuickAddError:
            raise
        except Exception as exc:
            logger.error("Quick add extraction failed: %s", exc)
            raise QuickAddError("Could not understand that, please try again") from exc
        request = parse_extraction(payload or {}, raw_text=cleaned)
        logger.info("Quick add parsed %r -> %s %s (%s)", cleaned, request.day, request.time_of_day, request.label)
        return AlarmDefinition(
            id=new_alarm_id(),
            time_of_day=request.time_of_day,
            label=request.label,
            specific_dates={request.day},
            is_enabled=True,
            sound_id=self.default_sound_id,
            narration_enabled=True,
            kind=AlarmKind.ALARM,
        )
