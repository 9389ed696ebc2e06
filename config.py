import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _get_env_optional_float(name: str) -> Optional[float]:
    val = os.getenv(name)
    if not val:
        return None
    return _get_env_float(name, 0.0)


@dataclass
class Config:
    gemini_api_key: str
    gemini_text_model: str
    gemini_tts_model: str
    voice_name: Optional[str]
    alarms_path: Path
    sounds_dir: Path
    custom_sounds_path: Path
    timezone: Optional[str]
    weather_latitude: Optional[float]
    weather_longitude: Optional[float]
    weather_location_name: Optional[str]
    output_device_index: Optional[int]
    output_target_rate: int
    tick_interval_ms: int
    chime_seconds: float
    ramp_interval_ms: int
    ramp_factor: float
    online_initial_volume: float
    offline_initial_volume: float
    duck_volume: float
    narration_deadline_seconds: float
    dedupe_window_minutes: int
    reachability_host: str
    reachability_port: int
    use_24_hour: bool
    debug: bool
    log_level: str

    @property
    def narration_available(self) -> bool:
        return bool(self.gemini_api_key)


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    gemini_api_key = os.getenv("GEMINI_API_KEY") or ""
    if not gemini_api_key:
        logging.warning("GEMINI_API_KEY is not set; narration, weather and quick add are disabled")

    output_device_env = os.getenv("OUTPUT_DEVICE_INDEX")

    ramp_factor = _get_env_float("RAMP_FACTOR", 1.3)
    if ramp_factor <= 1.0:
        raise ValueError("RAMP_FACTOR must be greater than 1")
    online_initial_volume = _get_env_float("ONLINE_INITIAL_VOLUME", 0.05)
    offline_initial_volume = _get_env_float("OFFLINE_INITIAL_VOLUME", 0.2)
    for name, value in (
        ("ONLINE_INITIAL_VOLUME", online_initial_volume),
        ("OFFLINE_INITIAL_VOLUME", offline_initial_volume),
    ):
        if not 0.0 < value <= 1.0:
            raise ValueError(f"{name} must be in (0, 1]")

    return Config(
        gemini_api_key=gemini_api_key,
        gemini_text_model=os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash"),
        gemini_tts_model=os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"),
        voice_name=os.getenv("VOICE_NAME", "Kore") or None,
        alarms_path=Path(os.getenv("ALARM_STORAGE_PATH", "data/alarms.json")),
        sounds_dir=Path(os.getenv("SOUNDS_DIR", "data/sounds")),
        custom_sounds_path=Path(os.getenv("CUSTOM_SOUNDS_PATH", "data/custom_sounds.json")),
        timezone=os.getenv("TIMEZONE") or None,
        weather_latitude=_get_env_optional_float("WEATHER_LATITUDE"),
        weather_longitude=_get_env_optional_float("WEATHER_LONGITUDE"),
        weather_location_name=os.getenv("WEATHER_LOCATION_NAME") or None,
        output_device_index=int(output_device_env) if output_device_env else None,
        output_target_rate=_get_env_int("OUTPUT_TARGET_RATE", 24000),
        tick_interval_ms=_get_env_int("TICK_INTERVAL_MS", 1000),
        chime_seconds=_get_env_float("CHIME_SECONDS", 5.0),
        ramp_interval_ms=_get_env_int("RAMP_INTERVAL_MS", 3000),
        ramp_factor=ramp_factor,
        online_initial_volume=online_initial_volume,
        offline_initial_volume=offline_initial_volume,
        duck_volume=_get_env_float("DUCK_VOLUME", 0.1),
        narration_deadline_seconds=_get_env_float("NARRATION_DEADLINE_SECONDS", 60.0),
        dedupe_window_minutes=_get_env_int("DEDUPE_WINDOW_MINUTES", 5),
        reachability_host=os.getenv("REACHABILITY_HOST", "8.8.8.8"),
        reachability_port=_get_env_int("REACHABILITY_PORT", 53),
        use_24_hour=_get_env_bool("USE_24_HOUR", False),
        debug=_get_env_bool("DEBUG", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "zora.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
