from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from time_utils import format_time_display, greeting_class

from .storage import AlarmDefinition

logger = logging.getLogger(__name__)


class NarrationError(Exception):
    """An external narration, speech or weather call failed."""


class NarrationOutcome(str, Enum):
    PLAYED = "played"
    STALE = "stale"
    EXPIRED = "expired"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    name: Optional[str] = None


@dataclass(frozen=True)
class Weather:
    temperature: float
    condition: str
    emoji: str
    location: str = ""


@dataclass
class NarrationContext:
    label: str
    time_of_day: str
    greeting: str
    weather: Optional[Weather] = None
    agenda: List[str] = field(default_factory=list)

    def agenda_summary(self) -> str:
        return ", ".join(self.agenda)


def build_context(
    alarm: AlarmDefinition,
    now: datetime,
    agenda: List[AlarmDefinition],
    weather: Optional[Weather] = None,
    use_24_hour: bool = False,
) -> NarrationContext:
    return NarrationContext(
        label=alarm.label,
        time_of_day=format_time_display(alarm.time_of_day, use_24_hour),
        greeting=greeting_class(now),
        weather=weather,
        agenda=[f"{a.label} at {format_time_display(a.time_of_day, use_24_hour)}" for a in agenda],
    )


def greeting_prompt(context: NarrationContext) -> str:
    weather = context.weather
    weather_line = (
        f"{weather.condition} at {weather.temperature:.0f}°C" if weather else "unknown skies"
    )
    agenda = context.agenda_summary()
    return (
        f"Generate a detailed, cheerful and energetic {context.greeting} greeting to wake the user up right now!\n"
        f'Primary reason: "{context.label}" at {context.time_of_day}.\n'
        f"Day's schedule: {agenda or 'A fresh empty canvas!'}.\n"
        f"Weather: {weather_line}.\n\n"
        "Requirements:\n"
        f'1. Start with an immediate, radiant "Good {context.greeting}! It\'s time to rise!"\n'
        f'2. Specifically mention: "{context.label}".\n'
        "3. Give a cheerful summary of the rest of the day.\n"
        "4. Tone: helpful, sun-like personal assistant.\n"
        "5. Length: 3-4 sentences."
    )


def fallback_greeting(context: NarrationContext) -> str:
    return f"Rise and shine! It's time for {context.label}!"
