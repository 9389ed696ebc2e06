from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:  # pragma: no cover - environment-dependent
            logger.warning("Failed to load timezone %s via zoneinfo (%s)", name, exc)
    local_tz = datetime.now().astimezone().tzinfo
    logger.info("Using system local timezone: %s", getattr(local_tz, "key", local_tz))
    return local_tz  # type: ignore[return-value]


def now_in_tz(tz) -> datetime:
    if tz:
        return datetime.now(tz)
    return datetime.now().astimezone()


def format_time_display(time_of_day: str, use_24_hour: bool = False) -> str:
    hour_raw, minute = time_of_day.split(":")
    if use_24_hour:
        return f"{hour_raw}:{minute}"
    hour = int(hour_raw)
    ampm = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute} {ampm}"


def greeting_class(now: datetime) -> str:
    hour = now.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"
