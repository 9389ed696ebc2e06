from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccurrenceKey:
    alarm_id: str
    day: date
    time_of_day: str

    @property
    def minute(self) -> datetime:
        hour, minute = (int(part) for part in self.time_of_day.split(":"))
        return datetime(self.day.year, self.day.month, self.day.day, hour, minute)


class DedupeTracker:
    """Lets each occurrence key through at most once.

    Only keys within a window of the incoming key's minute are remembered, so
    memory stays bounded. A wall clock corrected backwards past the window
    does not suppress occurrences that have not fired yet.
    """

    def __init__(self, window_minutes: int = 5):
        if window_minutes < 1:
            raise ValueError("Dedupe window must be at least one minute")
        self.window = timedelta(minutes=window_minutes)
        self._seen: Dict[OccurrenceKey, datetime] = {}
        self._lock = Lock()

    def should_fire(self, key: OccurrenceKey) -> bool:
        minute = key.minute
        with self._lock:
            self._evict(minute)
            if key in self._seen:
                logger.debug("Occurrence %s already fired; refusing", key)
                return False
            self._seen[key] = minute
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def _evict(self, current: datetime) -> None:
        stale = [k for k, m in self._seen.items() if abs(m - current) > self.window]
        for k in stale:
            del self._seen[k]
