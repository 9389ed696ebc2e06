"""Alarm scheduling and triggering engine for Zora."""

from .clock import Occurrence, OccurrenceClock
from .dedupe import DedupeTracker, OccurrenceKey
from .lifecycle import LifecycleState, LifecycleStateMachine, RingingContext
from .manager import AlarmManager
from .orchestrator import SideEffectOrchestrator, VolumeRamp
from .recurrence import matches
from .storage import AlarmDefinition, AlarmKind, DateRange, JsonAlarmStorage
