from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from threading import Event, Thread
from typing import Callable, Iterable, List, Optional

from .dedupe import OccurrenceKey
from .recurrence import matches
from .storage import AlarmDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Occurrence:
    alarm: AlarmDefinition
    day: date
    time_of_day: str

    @property
    def key(self) -> OccurrenceKey:
        return OccurrenceKey(alarm_id=self.alarm.id, day=self.day, time_of_day=self.time_of_day)


def find_due(alarms: Iterable[AlarmDefinition], now: datetime) -> List[Occurrence]:
    """All enabled alarms scheduled for the minute of ``now``."""
    time_of_day = now.strftime("%H:%M")
    today = now.date()
    return [
        Occurrence(alarm=alarm, day=today, time_of_day=time_of_day)
        for alarm in alarms
        if alarm.is_enabled and alarm.time_of_day == time_of_day and matches(alarm, today)
    ]


class OccurrenceClock:
    def __init__(
        self,
        alarms_fn: Callable[[], List[AlarmDefinition]],
        on_occurrences: Callable[[List[Occurrence]], None],
        now_fn: Callable[[], datetime],
        interval: float = 1.0,
    ):
        self.alarms_fn = alarms_fn
        self.on_occurrences = on_occurrences
        self.now_fn = now_fn
        self.interval = max(0.1, interval)

        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="occurrence-clock", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self, now: Optional[datetime] = None) -> List[Occurrence]:
        now = now or self.now_fn()
        if now.second != 0:
            return []
        due = find_due(self.alarms_fn(), now)
        if due:
            logger.info(
                "Tick %s matched %s occurrence(s): %s",
                now.strftime("%Y-%m-%d %H:%M"),
                len(due),
                ", ".join(o.alarm.id for o in due),
            )
            self.on_occurrences(due)
        return due

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.error("Occurrence clock tick failed", exc_info=True)
            self._stop_event.wait(self._delay_to_next_tick())

    def _delay_to_next_tick(self) -> float:
        # Wake just after the next second boundary so the :00 second is observed.
        if self.interval != 1.0:
            return self.interval
        now = self.now_fn()
        return max(0.05, 1.0 - now.microsecond / 1_000_000 + 0.01)
