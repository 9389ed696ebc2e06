from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, List, Optional

from .clock import Occurrence
from .storage import AlarmDefinition, AlarmKind

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    IDLE = "idle"
    RINGING = "ringing"
    CHIMING = "chiming"


class TransitionKind(str, Enum):
    RING = "ring"
    CHIME = "chime"
    DROPPED = "dropped"


@dataclass(frozen=True)
class RingingContext:
    alarm: AlarmDefinition
    generation: int
    started_at: float


@dataclass(frozen=True)
class Chime:
    alarm: AlarmDefinition
    until: float


@dataclass(frozen=True)
class Transition:
    kind: TransitionKind
    occurrence: Occurrence
    context: Optional[RingingContext] = None
    chime: Optional[Chime] = None


class LifecycleStateMachine:
    """Owns the single ringing slot and the momentary chimes.

    Alarm-kind occurrences compete for the ringing slot, first one wins.
    Event-kind occurrences chime for a fixed time and never touch the slot.
    """

    def __init__(self, chime_seconds: float = 5.0, monotonic: Callable[[], float] = time.monotonic):
        self.chime_seconds = chime_seconds
        self.monotonic = monotonic
        self._lock = Lock()
        self._generations = itertools.count(1)
        self._ringing: Optional[RingingContext] = None
        self._chimes: List[Chime] = []

    @property
    def ringing(self) -> Optional[RingingContext]:
        with self._lock:
            return self._ringing

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            if self._ringing is not None:
                return LifecycleState.RINGING
            if self._active_chimes_locked():
                return LifecycleState.CHIMING
            return LifecycleState.IDLE

    def active_chimes(self) -> List[Chime]:
        with self._lock:
            return list(self._active_chimes_locked())

    def on_occurrence(self, occurrence: Occurrence) -> Transition:
        kind = occurrence.alarm.kind
        if kind is AlarmKind.EVENT:
            return self._chime(occurrence)
        if kind is AlarmKind.ALARM:
            return self._ring(occurrence)
        raise ValueError(f"Unknown alarm kind: {kind!r}")

    def dismiss(self) -> Optional[RingingContext]:
        with self._lock:
            current = self._ringing
            self._ringing = None
        if current:
            logger.info("Dismissed alarm %s (generation=%s)", current.alarm.id, current.generation)
        return current

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return self._ringing is not None and self._ringing.generation == generation

    def _ring(self, occurrence: Occurrence) -> Transition:
        with self._lock:
            if self._ringing is not None:
                logger.info(
                    "Alarm %s dropped: %s is already ringing",
                    occurrence.alarm.id,
                    self._ringing.alarm.id,
                )
                return Transition(TransitionKind.DROPPED, occurrence, context=self._ringing)
            context = RingingContext(
                alarm=occurrence.alarm,
                generation=next(self._generations),
                started_at=self.monotonic(),
            )
            self._ringing = context
        logger.info("State -> ringing (alarm=%s, generation=%s)", occurrence.alarm.id, context.generation)
        return Transition(TransitionKind.RING, occurrence, context=context)

    def _chime(self, occurrence: Occurrence) -> Transition:
        chime = Chime(alarm=occurrence.alarm, until=self.monotonic() + self.chime_seconds)
        with self._lock:
            self._active_chimes_locked()
            self._chimes.append(chime)
        logger.info("Event %s chiming for %.0fs", occurrence.alarm.id, self.chime_seconds)
        return Transition(TransitionKind.CHIME, occurrence, chime=chime)

    def _active_chimes_locked(self) -> List[Chime]:
        now = self.monotonic()
        self._chimes = [c for c in self._chimes if c.until > now]
        return self._chimes
