from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import pytest

from alarms.dedupe import DedupeTracker
from alarms.lifecycle import LifecycleStateMachine
from alarms.manager import AlarmManager
from alarms.narration import NarrationContext, NarrationError, Weather
from alarms.orchestrator import OrchestratorSettings, SideEffectOrchestrator
from alarms.sounds import SoundCatalog
from alarms.storage import AlarmDefinition


class MemoryStorage:
    def __init__(self, alarms: Optional[List[AlarmDefinition]] = None):
        self.alarms = list(alarms or [])
        self.saves = 0

    def load_alarms(self) -> List[AlarmDefinition]:
        return list(self.alarms)

    def save_alarms(self, alarms: List[AlarmDefinition]) -> None:
        self.alarms = list(alarms)
        self.saves += 1


class FakeLoop:
    def __init__(self, fail_start: bool = False, fail_ids=()):
        self.fail_start = fail_start
        self.fail_ids = set(fail_ids)
        self.started: List[tuple] = []
        self.volumes: List[float] = []
        self.stops = 0
        self.volume: Optional[float] = None

    def start(self, asset, volume: float) -> None:
        if self.fail_start or asset.id in self.fail_ids:
            raise OSError("no output device")
        self.started.append((asset.id, volume))
        self.volume = volume

    def set_volume(self, volume: float) -> None:
        self.volumes.append(volume)
        self.volume = volume

    def stop(self) -> None:
        self.stops += 1


class FakeClip:
    def __init__(self):
        self.played: List[bytes] = []
        self.on_done: List[Callable[[], None]] = []
        self.stops = 0

    def play(self, pcm: bytes, on_done=None) -> None:
        self.played.append(pcm)
        if on_done:
            self.on_done.append(on_done)

    def stop(self) -> None:
        self.stops += 1

    def finish(self) -> None:
        for callback in self.on_done:
            callback()
        self.on_done.clear()


class FailingClip(FakeClip):
    def play(self, pcm: bytes, on_done=None) -> None:
        raise OSError("device busy")


class FakeNotifier:
    def __init__(self):
        self.notifications: List[tuple] = []
        self.vibrations: List[tuple] = []
        self.cancels = 0

    def notify(self, title: str, body: str) -> None:
        self.notifications.append((title, body))

    def vibrate(self, pattern, repeat: bool = False) -> None:
        self.vibrations.append((tuple(pattern), repeat))

    def cancel_vibration(self) -> None:
        self.cancels += 1


class FakeBanner:
    def __init__(self):
        self.shown: List[tuple] = []

    def show(self, text: str, seconds: float) -> None:
        self.shown.append((text, seconds))


class FakeNarrator:
    def __init__(self, audio: bytes = b"\x01\x00" * 100):
        self.audio = audio
        self.contexts: List[NarrationContext] = []
        self.synthesized: List[str] = []
        self.before_greeting_returns: Optional[Callable[[], None]] = None
        self.before_speech_returns: Optional[Callable[[], None]] = None
        self.fail_greeting = False
        self.fail_speech = False
        self.greeting_text: Optional[str] = None

    def generate_greeting(self, context: NarrationContext) -> str:
        self.contexts.append(context)
        if self.fail_greeting:
            raise NarrationError("greeting service unavailable")
        if self.before_greeting_returns:
            self.before_greeting_returns()
        if self.greeting_text is not None:
            return self.greeting_text
        return f"Good {context.greeting}! Time for {context.label}."

    def synthesize_speech(self, text: str) -> bytes:
        self.synthesized.append(text)
        if self.fail_speech:
            raise NarrationError("synthesis failed")
        if self.before_speech_returns:
            self.before_speech_returns()
        return self.audio


class FakeWeather:
    def __init__(self, fail: bool = False):
        self.fail = fail

    def current_conditions(self, location) -> Weather:
        if self.fail:
            raise NarrationError("weather offline")
        return Weather(temperature=18.0, condition="Sunny", emoji="☀", location="Testville")


class Spawner:
    def __init__(self):
        self.tasks: List[tuple] = []

    def __call__(self, target, name: str) -> None:
        self.tasks.append((name, target))

    def names(self) -> List[str]:
        return [name for name, _ in self.tasks]

    def run(self, prefix: str):
        results = []
        for name, target in list(self.tasks):
            if name.startswith(prefix):
                self.tasks.remove((name, target))
                results.append(target())
        return results


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Engine:
    manager: AlarmManager
    orchestrator: SideEffectOrchestrator
    lifecycle: LifecycleStateMachine
    storage: MemoryStorage
    loop: FakeLoop
    narration_out: FakeClip
    chime_out: FakeClip
    notifier: FakeNotifier
    banner: FakeBanner
    narrator: Optional[FakeNarrator]
    spawner: Spawner
    monotonic: FakeMonotonic
    network: dict = field(default_factory=lambda: {"online": True})

    def add(self, alarm: AlarmDefinition) -> AlarmDefinition:
        return self.manager.add_alarm(alarm)


@pytest.fixture
def make_engine(tmp_path):
    def _make(
        alarms: Optional[List[AlarmDefinition]] = None,
        online: bool = True,
        narrator: Optional[FakeNarrator] = None,
        weather: Optional[FakeWeather] = None,
        location=None,
        loop: Optional[FakeLoop] = None,
        narration_out: Optional[FakeClip] = None,
        now: datetime = datetime(2024, 3, 6, 8, 0, 0),
    ) -> Engine:
        storage = MemoryStorage(alarms)
        monotonic = FakeMonotonic()
        lifecycle = LifecycleStateMachine(chime_seconds=5.0, monotonic=monotonic)
        manager = AlarmManager(storage=storage, lifecycle=lifecycle, now_fn=lambda: now, dedupe=DedupeTracker())
        network = {"online": online}
        spawner = Spawner()
        parts = dict(
            loop=loop or FakeLoop(),
            narration_out=narration_out or FakeClip(),
            chime_out=FakeClip(),
            notifier=FakeNotifier(),
            banner=FakeBanner(),
        )
        orchestrator = SideEffectOrchestrator(
            sound_catalog=SoundCatalog(tmp_path / "sounds", tmp_path / "custom_sounds.json"),
            loop_output=parts["loop"],
            narration_output=parts["narration_out"],
            chime_output=parts["chime_out"],
            notifier=parts["notifier"],
            banner=parts["banner"],
            is_current=lifecycle.is_current,
            is_online=lambda: network["online"],
            agenda_fn=manager.alarms_for_date,
            now_fn=lambda: now,
            narration_client=narrator,
            weather_client=weather,
            location=location,
            chime_pcm=b"\x00\x01" * 10,
            settings=OrchestratorSettings(),
            spawn=spawner,
            monotonic=monotonic,
        )
        manager.attach(orchestrator)
        manager.load()
        return Engine(
            manager=manager,
            orchestrator=orchestrator,
            lifecycle=lifecycle,
            storage=storage,
            narrator=narrator,
            spawner=spawner,
            monotonic=monotonic,
            network=network,
            **parts,
        )

    return _make
