from __future__ import annotations

import logging
from datetime import date, datetime
from threading import Lock
from typing import Callable, List, Optional, Protocol

from .clock import Occurrence, OccurrenceClock
from .dedupe import DedupeTracker
from .lifecycle import LifecycleStateMachine, RingingContext, Transition, TransitionKind
from .orchestrator import SideEffectOrchestrator
from .recurrence import alarms_on_date
from .storage import AlarmDefinition, new_alarm_id

logger = logging.getLogger(__name__)


class AlarmStorage(Protocol):
    def load_alarms(self) -> List[AlarmDefinition]: ...

    def save_alarms(self, alarms: List[AlarmDefinition]) -> None: ...


class AlarmManager:
    """Alarm registry plus the tick -> dedupe -> lifecycle -> side effect pipeline."""

    def __init__(
        self,
        storage: AlarmStorage,
        lifecycle: LifecycleStateMachine,
        now_fn: Callable[[], datetime],
        tick_interval: float = 1.0,
        dedupe: Optional[DedupeTracker] = None,
    ):
        self.storage = storage
        self.lifecycle = lifecycle
        self.now_fn = now_fn
        self.dedupe = dedupe or DedupeTracker()
        self.orchestrator: Optional[SideEffectOrchestrator] = None
        self.clock = OccurrenceClock(
            alarms_fn=self.list_alarms,
            on_occurrences=self.handle_occurrences,
            now_fn=now_fn,
            interval=tick_interval,
        )

        self._alarms: List[AlarmDefinition] = []
        self._lock = Lock()

    def attach(self, orchestrator: SideEffectOrchestrator) -> None:
        self.orchestrator = orchestrator

    def load(self) -> None:
        with self._lock:
            self._alarms = list(self.storage.load_alarms())
        logger.info("Loaded %s alarms", len(self._alarms))

    def start(self) -> None:
        self.load()
        self.clock.start()

    def shutdown(self) -> None:
        self.clock.shutdown()
        if self.orchestrator:
            self.orchestrator.stop_ringing()

    def list_alarms(self) -> List[AlarmDefinition]:
        with self._lock:
            return list(self._alarms)

    def alarms_for_date(self, day: date) -> List[AlarmDefinition]:
        return alarms_on_date(self.list_alarms(), day)

    def get_alarm(self, alarm_id: str) -> Optional[AlarmDefinition]:
        with self._lock:
            return next((a for a in self._alarms if a.id == alarm_id), None)

    def add_alarm(self, alarm: AlarmDefinition) -> AlarmDefinition:
        with self._lock:
            if not alarm.id or any(a.id == alarm.id for a in self._alarms):
                alarm = alarm.with_changes(id=new_alarm_id())
            self._alarms.append(alarm)
            self.storage.save_alarms(self._alarms)
        if not alarm.has_occurrence_rule:
            logger.warning("Alarm %s has no dates or repeat days and will never ring", alarm.id)
        logger.info("Alarm %s scheduled at %s (label=%s, kind=%s)", alarm.id, alarm.time_of_day, alarm.label, alarm.kind.value)
        return alarm

    def update_alarm(self, alarm: AlarmDefinition) -> Optional[AlarmDefinition]:
        with self._lock:
            for idx, existing in enumerate(self._alarms):
                if existing.id == alarm.id:
                    self._alarms[idx] = alarm
                    self.storage.save_alarms(self._alarms)
                    logger.info("Updated alarm %s", alarm.id)
                    return alarm
        return None

    def remove_alarm(self, alarm_id: str) -> Optional[AlarmDefinition]:
        with self._lock:
            removed = next((a for a in self._alarms if a.id == alarm_id), None)
            if not removed:
                return None
            self._alarms = [a for a in self._alarms if a.id != alarm_id]
            self.storage.save_alarms(self._alarms)
        logger.info("Removed alarm %s", alarm_id)
        return removed

    def toggle_alarm(self, alarm_id: str) -> Optional[AlarmDefinition]:
        with self._lock:
            for idx, existing in enumerate(self._alarms):
                if existing.id == alarm_id:
                    toggled = existing.with_changes(is_enabled=not existing.is_enabled)
                    self._alarms[idx] = toggled
                    self.storage.save_alarms(self._alarms)
                    logger.info("Alarm %s enabled=%s", alarm_id, toggled.is_enabled)
                    return toggled
        return None

    def tick(self, now: Optional[datetime] = None) -> List[Occurrence]:
        return self.clock.tick(now)

    def handle_occurrences(self, occurrences: List[Occurrence]) -> List[Transition]:
        fresh = [o for o in occurrences if self.dedupe.should_fire(o.key)]
        transitions = [self.lifecycle.on_occurrence(o) for o in fresh]
        for transition in transitions:
            self._dispatch(transition)
        return transitions

    def dismiss(self) -> Optional[AlarmDefinition]:
        context = self.lifecycle.dismiss()
        # also tears down audio started for a generation that was already dismissed
        if self.orchestrator:
            self.orchestrator.stop_ringing()
        return context.alarm if context else None

    @property
    def is_ringing(self) -> bool:
        return self.lifecycle.ringing is not None

    @property
    def ringing(self) -> Optional[RingingContext]:
        return self.lifecycle.ringing

    def _dispatch(self, transition: Transition) -> None:
        if self.orchestrator is None:
            logger.warning("No side effect orchestrator attached; %s not dispatched", transition.kind.value)
            return
        if transition.kind is TransitionKind.RING and transition.context:
            self.orchestrator.start_ringing(transition.context)
        elif transition.kind is TransitionKind.CHIME:
            self.orchestrator.chime(transition.occurrence.alarm)
