from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial
from threading import Event, RLock, Thread
from typing import Callable, List, Optional, Protocol, Sequence

from .lifecycle import RingingContext
from .narration import (
    Location,
    NarrationContext,
    NarrationOutcome,
    Weather,
    build_context,
    fallback_greeting,
)
from .sounds import DEFAULT_SOUND_ID, SoundAsset, SoundCatalog
from .storage import AlarmDefinition

logger = logging.getLogger(__name__)


class LoopOutput(Protocol):
    def start(self, asset: SoundAsset, volume: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def stop(self) -> None: ...


class ClipOutput(Protocol):
    def play(self, pcm: bytes, on_done: Optional[Callable[[], None]] = None) -> None: ...

    def stop(self) -> None: ...


class NarrationClient(Protocol):
    def generate_greeting(self, context: NarrationContext) -> str: ...

    def synthesize_speech(self, text: str) -> bytes: ...


class WeatherClient(Protocol):
    def current_conditions(self, location: Location) -> Weather: ...


class NotifierLike(Protocol):
    def notify(self, title: str, body: str) -> None: ...

    def vibrate(self, pattern: Sequence[float], repeat: bool = False) -> None: ...

    def cancel_vibration(self) -> None: ...


class BannerLike(Protocol):
    def show(self, text: str, seconds: float) -> None: ...


def spawn_thread(target: Callable[[], None], name: str) -> None:
    Thread(target=target, name=name, daemon=True).start()


class VolumeRamp:
    """Multiplicative volume escalation capped at a ceiling."""

    def __init__(self, initial: float, factor: float = 1.3, ceiling: float = 1.0):
        if not 0 < initial <= ceiling:
            raise ValueError("Initial volume must be in (0, ceiling]")
        if factor <= 1:
            raise ValueError("Ramp factor must be greater than 1")
        self.factor = factor
        self.ceiling = ceiling
        self.volume = initial

    @property
    def at_ceiling(self) -> bool:
        return self.volume >= self.ceiling

    def step(self) -> float:
        self.volume = min(self.ceiling, self.volume * self.factor)
        return self.volume

    @staticmethod
    def steps_to_ceiling(initial: float, factor: float = 1.3, ceiling: float = 1.0) -> int:
        if initial >= ceiling:
            return 0
        return math.ceil(math.log(ceiling / initial) / math.log(factor))


@dataclass
class OrchestratorSettings:
    online_initial_volume: float = 0.05
    offline_initial_volume: float = 0.2
    ramp_factor: float = 1.3
    ramp_interval: float = 3.0
    max_volume: float = 1.0
    duck_volume: float = 0.1
    narration_deadline: float = 60.0
    chime_seconds: float = 5.0
    alarm_vibration: Sequence[float] = (0.0, 1.0, 0.5)
    chime_vibration: Sequence[float] = (0.0, 0.2)
    use_24_hour: bool = False


@dataclass
class _RingSession:
    context: RingingContext
    ramp: VolumeRamp
    stop_event: Event
    narrating: bool = False


class SideEffectOrchestrator:
    """Drives audio, haptics, notifications and narration for lifecycle transitions.

    Network calls for narration run on worker threads. Their results are only
    applied under ``self._lock`` after checking that the ringing generation they
    were started for is still the live one, so a dismissal (or a different alarm
    taking over) makes a late result a no-op.
    """

    def __init__(
        self,
        sound_catalog: SoundCatalog,
        loop_output: LoopOutput,
        narration_output: ClipOutput,
        chime_output: ClipOutput,
        notifier: NotifierLike,
        banner: BannerLike,
        is_current: Callable[[int], bool],
        is_online: Callable[[], bool],
        agenda_fn: Callable[[date], List[AlarmDefinition]],
        now_fn: Callable[[], datetime],
        narration_client: Optional[NarrationClient] = None,
        weather_client: Optional[WeatherClient] = None,
        location: Optional[Location] = None,
        chime_pcm: bytes = b"",
        settings: Optional[OrchestratorSettings] = None,
        spawn: Callable[[Callable[[], None], str], None] = spawn_thread,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.sound_catalog = sound_catalog
        self.loop_output = loop_output
        self.narration_output = narration_output
        self.chime_output = chime_output
        self.notifier = notifier
        self.banner = banner
        self.is_current = is_current
        self.is_online = is_online
        self.agenda_fn = agenda_fn
        self.now_fn = now_fn
        self.narration_client = narration_client
        self.weather_client = weather_client
        self.location = location
        self.chime_pcm = chime_pcm
        self.settings = settings or OrchestratorSettings()
        self.spawn = spawn
        self.monotonic = monotonic

        self._lock = RLock()
        self._session: Optional[_RingSession] = None
        self.last_narration_outcome: Optional[NarrationOutcome] = None

    @property
    def current_volume(self) -> Optional[float]:
        with self._lock:
            return self._session.ramp.volume if self._session else None

    def start_ringing(self, context: RingingContext) -> None:
        alarm = context.alarm
        asset = self.sound_catalog.resolve(alarm.sound_id)
        online = self._check_online()
        settings = self.settings
        initial = settings.online_initial_volume if online else settings.offline_initial_volume
        ramp = VolumeRamp(initial, factor=settings.ramp_factor, ceiling=settings.max_volume)
        session = _RingSession(context=context, ramp=ramp, stop_event=Event())

        with self._lock:
            # dismissed between the lifecycle transition and this dispatch
            if not self.is_current(context.generation):
                logger.info(
                    "Ringing for %s (generation=%s) dismissed before it started",
                    alarm.id,
                    context.generation,
                )
                return
            if self._session:
                self._teardown_locked()
            self._session = session
            started = self._safe_call("start looped audio", self.loop_output.start, asset, initial)
            if not started and asset.id != DEFAULT_SOUND_ID:
                fallback = self.sound_catalog.default()
                logger.warning("Sound %s failed to start, falling back to %s", asset.id, fallback.id)
                asset = fallback
                self._safe_call("start default looped audio", self.loop_output.start, asset, initial)
            self.notifier.vibrate(settings.alarm_vibration, repeat=True)
            if alarm.narration_enabled and not (online and self.narration_client):
                self.last_narration_outcome = NarrationOutcome.SKIPPED
        logger.info(
            "Ringing %s with sound %s at volume %.2f (online=%s)",
            alarm.id,
            asset.id,
            initial,
            online,
        )
        self.notifier.notify(alarm.label or "Alarm", f"Alarm {alarm.time_of_day}")

        self.spawn(partial(self._ramp_loop, session), f"volume-ramp-{context.generation}")
        if alarm.narration_enabled and online and self.narration_client:
            self.spawn(partial(self.narrate, context), f"narration-{context.generation}")
        elif alarm.narration_enabled:
            logger.info("Narration skipped for %s (online=%s)", alarm.id, online)

    def stop_ringing(self) -> None:
        with self._lock:
            session = self._session
            if session is None:
                return
            self._teardown_locked()
            self.notifier.cancel_vibration()
        logger.info("Stopped ringing %s", session.context.alarm.id)

    def chime(self, alarm: AlarmDefinition) -> None:
        if self.chime_pcm:
            self._safe_call("play chime", self.chime_output.play, self.chime_pcm)
        self.notifier.vibrate(self.settings.chime_vibration, repeat=False)
        body = alarm.description or f"Starts at {alarm.time_of_day}"
        if alarm.end_time_of_day:
            body = f"{body} (until {alarm.end_time_of_day})"
        self.notifier.notify(alarm.label or "Event", body)
        self.banner.show(f"{alarm.time_of_day} {alarm.label}", self.settings.chime_seconds)

    def ramp_step(self, generation: int) -> bool:
        """Advance the ramp once; returns False once ramping should end."""
        with self._lock:
            session = self._session
            if not session or session.context.generation != generation or not self.is_current(generation):
                return False
            if session.narrating:
                return True
            volume = session.ramp.step()
            self._safe_call("set loop volume", self.loop_output.set_volume, volume)
            return not session.ramp.at_ceiling

    def narrate(self, context: RingingContext) -> NarrationOutcome:
        outcome = self._narrate(context)
        with self._lock:
            self.last_narration_outcome = outcome
        return outcome

    def _narrate(self, context: RingingContext) -> NarrationOutcome:
        client = self.narration_client
        if client is None:
            return NarrationOutcome.SKIPPED
        alarm = context.alarm
        try:
            narration_context = self._build_narration_context(alarm)
            text = client.generate_greeting(narration_context)
            if not self._is_live(context):
                logger.info("Narration text for %s arrived after dismissal; discarding", alarm.id)
                return NarrationOutcome.STALE
            if not text:
                logger.info("Greeting for %s came back empty, using fallback", alarm.id)
                text = fallback_greeting(narration_context)
            audio = client.synthesize_speech(text)
        except Exception as exc:
            logger.warning("Narration failed for %s: %s", alarm.id, exc)
            return NarrationOutcome.FAILED
        if not audio:
            logger.warning("Narration for %s produced no audio", alarm.id)
            return NarrationOutcome.FAILED

        with self._lock:
            if not self._is_live(context):
                logger.info(
                    "Discarding stale narration audio for %s (generation=%s)",
                    alarm.id,
                    context.generation,
                )
                return NarrationOutcome.STALE
            elapsed = self.monotonic() - context.started_at
            if elapsed > self.settings.narration_deadline:
                logger.info("Narration for %s arrived after %.0fs; discarding", alarm.id, elapsed)
                return NarrationOutcome.EXPIRED
            session = self._session
            self._safe_call("stop previous narration", self.narration_output.stop)
            session.narrating = True
            self._safe_call("duck loop volume", self.loop_output.set_volume, self.settings.duck_volume)
            try:
                self.narration_output.play(audio, partial(self._narration_finished, context.generation))
            except Exception as exc:
                logger.warning("Narration playback failed for %s: %s", alarm.id, exc)
                session.narrating = False
                self._safe_call("restore loop volume", self.loop_output.set_volume, session.ramp.volume)
                return NarrationOutcome.FAILED
        logger.info("Playing narration for %s (%d bytes)", alarm.id, len(audio))
        return NarrationOutcome.PLAYED

    def _narration_finished(self, generation: int) -> None:
        with self._lock:
            session = self._session
            if not session or session.context.generation != generation:
                return
            session.narrating = False
            if self.is_current(generation):
                self._safe_call("restore loop volume", self.loop_output.set_volume, session.ramp.volume)

    def _build_narration_context(self, alarm: AlarmDefinition) -> NarrationContext:
        now = self.now_fn()
        weather = None
        if self.weather_client and self.location:
            try:
                weather = self.weather_client.current_conditions(self.location)
            except Exception as exc:
                logger.info("Weather unavailable for narration: %s", exc)
        agenda = [a for a in self.agenda_fn(now.date()) if a.is_enabled]
        return build_context(alarm, now, agenda, weather=weather, use_24_hour=self.settings.use_24_hour)

    def _ramp_loop(self, session: _RingSession) -> None:
        generation = session.context.generation
        while not session.stop_event.wait(self.settings.ramp_interval):
            if not self.ramp_step(generation):
                break
        logger.debug("Volume ramp for generation %s finished", generation)

    def _is_live(self, context: RingingContext) -> bool:
        session = self._session
        return (
            session is not None
            and session.context.generation == context.generation
            and self.is_current(context.generation)
        )

    def _teardown_locked(self) -> None:
        session = self._session
        self._session = None
        if session:
            session.stop_event.set()
        self._safe_call("stop looped audio", self.loop_output.stop)
        self._safe_call("stop narration", self.narration_output.stop)

    def _check_online(self) -> bool:
        try:
            return bool(self.is_online())
        except Exception as exc:
            logger.warning("Reachability check failed: %s", exc)
            return False

    @staticmethod
    def _safe_call(what: str, fn: Callable, *args) -> bool:
        try:
            fn(*args)
        except Exception:
            logger.error("Failed to %s", what, exc_info=True)
            return False
        return True
