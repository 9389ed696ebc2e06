import logging
import signal
import time
from datetime import date
from threading import Event, Thread
from typing import Optional

from alarms.dedupe import DedupeTracker
from alarms.gestures import DismissGestures
from alarms.lifecycle import LifecycleStateMachine
from alarms.manager import AlarmManager
from alarms.narration import Location
from alarms.notifier import Banner, Notifier
from alarms.orchestrator import OrchestratorSettings, SideEffectOrchestrator
from alarms.quick_add import QuickAdd, QuickAddError
from alarms.sounds import SoundCatalog, chime_tone
from alarms.storage import JsonAlarmStorage
from audio_io import ClipPlayer, LoopPlayer, create_pyaudio
from config import Config, load_config, setup_logging
from gemini_client import GeminiClient
from network import Reachability
from time_utils import format_time_display, now_in_tz, resolve_timezone

logger = logging.getLogger("zora")

HELP_TEXT = (
    "Commands: list [YYYY-MM-DD] | add <text> | toggle <id> | delete <id> | "
    "dismiss | swipe <0..1> | tap | status | quit"
)


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


signal.signal(signal.SIGINT, graceful_exit)


class ZoraRuntime:
    def __init__(self, config: Config, pa, gemini: Optional[GeminiClient]):
        self.config = config
        self.pa = pa
        self.tzinfo = resolve_timezone(config.timezone)
        self.stop_event = Event()
        self.command_thread: Optional[Thread] = None

        reachability = Reachability(config.reachability_host, config.reachability_port)
        self.is_online = reachability.is_online

        self.lifecycle = LifecycleStateMachine(chime_seconds=config.chime_seconds)
        self.alarm_manager = AlarmManager(
            storage=JsonAlarmStorage(config.alarms_path),
            lifecycle=self.lifecycle,
            now_fn=self._now,
            tick_interval=config.tick_interval_ms / 1000.0,
            dedupe=DedupeTracker(window_minutes=config.dedupe_window_minutes),
        )

        location = None
        if config.weather_latitude is not None and config.weather_longitude is not None:
            location = Location(config.weather_latitude, config.weather_longitude, config.weather_location_name)

        rate = config.output_target_rate
        self.orchestrator = SideEffectOrchestrator(
            sound_catalog=SoundCatalog(config.sounds_dir, config.custom_sounds_path),
            loop_output=LoopPlayer(pa, rate, config.output_device_index),
            narration_output=ClipPlayer(pa, rate, config.output_device_index),
            chime_output=ClipPlayer(pa, rate, config.output_device_index),
            notifier=Notifier(),
            banner=Banner(),
            is_current=self.lifecycle.is_current,
            is_online=self.is_online,
            agenda_fn=self.alarm_manager.alarms_for_date,
            now_fn=self._now,
            narration_client=gemini,
            weather_client=gemini,
            location=location,
            chime_pcm=chime_tone(rate),
            settings=OrchestratorSettings(
                online_initial_volume=config.online_initial_volume,
                offline_initial_volume=config.offline_initial_volume,
                ramp_factor=config.ramp_factor,
                ramp_interval=config.ramp_interval_ms / 1000.0,
                duck_volume=config.duck_volume,
                narration_deadline=config.narration_deadline_seconds,
                chime_seconds=config.chime_seconds,
                use_24_hour=config.use_24_hour,
            ),
        )
        self.alarm_manager.attach(self.orchestrator)
        self.gestures = DismissGestures(self.alarm_manager.dismiss)
        self.quick_add = QuickAdd(gemini.extract_alarm, self.is_online) if gemini else None

    def _now(self):
        return now_in_tz(self.tzinfo)

    def start(self) -> None:
        self.alarm_manager.start()
        self.command_thread = Thread(target=self._command_loop, name="commands", daemon=True)
        self.command_thread.start()

    def shutdown(self) -> None:
        self.stop_event.set()
        self.alarm_manager.shutdown()
        self.pa.terminate()

    def _command_loop(self) -> None:
        print(HELP_TEXT)
        while not self.stop_event.is_set():
            try:
                line = input("> ")
            except EOFError:
                self.stop_event.set()
                break
            reply = self.handle_command(line)
            if reply:
                print(reply)

    def handle_command(self, line: str) -> Optional[str]:
        command, _, arg = line.strip().partition(" ")
        command = command.lower()
        arg = arg.strip()
        if not command:
            return None
        if command == "quit":
            self.stop_event.set()
            return "Bye."
        if command == "list":
            try:
                day = date.fromisoformat(arg) if arg else self._now().date()
            except ValueError:
                return "list takes a date as YYYY-MM-DD."
            alarms = self.alarm_manager.alarms_for_date(day)
            if not alarms:
                return f"The horizon is clear on {day.isoformat()}."
            lines = [
                f"{a.id}  {format_time_display(a.time_of_day, self.config.use_24_hour)}  "
                f"{a.label}{'' if a.is_enabled else ' (off)'}"
                for a in alarms
            ]
            return "\n".join(lines)
        if command == "add":
            if not self.quick_add:
                return "Quick add needs GEMINI_API_KEY."
            try:
                alarm = self.quick_add.build_alarm(arg, self._now().date())
            except QuickAddError as exc:
                return str(exc)
            alarm = self.alarm_manager.add_alarm(alarm)
            day = next(iter(alarm.specific_dates))
            return f"Added {alarm.label} on {day.isoformat()} at {alarm.time_of_day} ({alarm.id})."
        if command == "toggle":
            toggled = self.alarm_manager.toggle_alarm(arg)
            if not toggled:
                return f"No alarm {arg}."
            return f"{toggled.label} is now {'on' if toggled.is_enabled else 'off'}."
        if command == "delete":
            removed = self.alarm_manager.remove_alarm(arg)
            return f"Deleted {removed.label}." if removed else f"No alarm {arg}."
        if command == "dismiss":
            dismissed = self.alarm_manager.dismiss()
            return f"Dismissed {dismissed.label}." if dismissed else "Nothing is ringing."
        if command == "swipe":
            try:
                progress = float(arg)
            except ValueError:
                return "swipe takes a number between 0 and 1."
            fired = self.gestures.swipe(progress)
            if not fired:
                self.gestures.release()
            return None
        if command == "tap":
            self.gestures.tap()
            return None
        if command == "status":
            ringing = self.alarm_manager.ringing
            if ringing:
                volume = self.orchestrator.current_volume
                return f"Ringing {ringing.alarm.label} (volume={volume:.2f})"
            return f"State: {self.lifecycle.state.value}"
        return HELP_TEXT


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    logger.info("Starting Zora alarm engine")

    gemini = None
    if config.narration_available:
        gemini = GeminiClient(
            api_key=config.gemini_api_key,
            text_model=config.gemini_text_model,
            tts_model=config.gemini_tts_model,
            voice_name=config.voice_name,
        )

    pa = create_pyaudio()
    runtime = ZoraRuntime(config, pa, gemini)
    runtime.start()
    try:
        while not runtime.stop_event.is_set():
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
