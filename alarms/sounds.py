from __future__ import annotations

import json
import logging
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000
DEFAULT_SOUND_ID = "classic"


@dataclass(frozen=True)
class SoundAsset:
    id: str
    name: str
    path: Path
    is_custom: bool = False


@dataclass(frozen=True)
class ToneSpec:
    name: str
    # (frequency Hz, duration s) segments; frequency 0 is silence
    segments: Tuple[Tuple[float, float], ...]
    decay: float = 0.0


BUILTIN_TONES: Dict[str, ToneSpec] = {
    "classic": ToneSpec("Classic Beep", ((880.0, 0.25), (0.0, 0.15), (880.0, 0.25), (0.0, 0.6))),
    "mellow": ToneSpec("Mellow Chime", ((659.3, 0.5), (523.3, 0.7), (0.0, 0.3)), decay=2.5),
    "morning": ToneSpec("Morning Dew", ((523.3, 0.2), (659.3, 0.2), (784.0, 0.4), (0.0, 0.5))),
    "zen": ToneSpec("Zen Bowl", ((432.0, 1.8), (0.0, 0.4)), decay=1.5),
}


def synthesize_tone(spec: ToneSpec, sample_rate: int = SAMPLE_RATE, amplitude: float = 0.4) -> np.ndarray:
    parts: List[np.ndarray] = []
    for freq, duration in spec.segments:
        t = np.arange(int(duration * sample_rate)) / sample_rate
        if freq <= 0:
            parts.append(np.zeros_like(t))
            continue
        wave_part = np.sin(2 * np.pi * freq * t)
        if spec.decay:
            wave_part *= np.exp(-spec.decay * t)
        # short fade to avoid clicks between segments
        fade = min(len(t) // 2, int(0.01 * sample_rate))
        if fade:
            envelope = np.ones_like(t)
            envelope[:fade] = np.linspace(0, 1, fade)
            envelope[-fade:] = np.linspace(1, 0, fade)
            wave_part *= envelope
        parts.append(wave_part)
    samples = np.concatenate(parts) if parts else np.zeros(0)
    return (samples * amplitude * 32767).astype(np.int16)


def write_wav(path: Path, samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "w") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples.astype(np.int16).tobytes())


def ensure_builtin_sound(path: Path, spec: ToneSpec) -> None:
    if path.exists():
        return
    write_wav(path, synthesize_tone(spec))
    logger.info("Generated built-in sound %s at %s", spec.name, path)


def chime_tone(sample_rate: int = SAMPLE_RATE) -> bytes:
    spec = ToneSpec("Event Chime", ((987.8, 0.15), (1318.5, 0.35)), decay=3.0)
    return synthesize_tone(spec, sample_rate=sample_rate, amplitude=0.35).tobytes()


class SoundCatalog:
    """Resolves sound ids to playable assets, falling back to the default beep."""

    def __init__(self, sounds_dir: Path, custom_sounds_path: Optional[Path] = None):
        self.sounds_dir = Path(sounds_dir)
        self.custom_sounds_path = custom_sounds_path

    def builtin_sounds(self) -> List[SoundAsset]:
        return [
            SoundAsset(id=sound_id, name=spec.name, path=self.sounds_dir / f"{sound_id}.wav")
            for sound_id, spec in BUILTIN_TONES.items()
        ]

    def custom_sounds(self) -> List[SoundAsset]:
        path = self.custom_sounds_path
        if not path or not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except Exception as exc:  # pragma: no cover - corrupted file
            logger.error("Failed to load custom sounds from %s: %s", path, exc)
            return []
        sounds: List[SoundAsset] = []
        for item in payload or []:
            try:
                sound_path = Path(item["path"])
                if not sound_path.is_absolute():
                    sound_path = path.parent / sound_path
                sounds.append(
                    SoundAsset(id=str(item["id"]), name=str(item.get("name") or item["id"]), path=sound_path, is_custom=True)
                )
            except (KeyError, TypeError) as exc:
                logger.warning("Skipping custom sound entry due to parse error: %s", exc)
        return sounds

    def all_sounds(self) -> List[SoundAsset]:
        return self.builtin_sounds() + self.custom_sounds()

    def resolve(self, sound_id: Optional[str]) -> SoundAsset:
        for asset in self.all_sounds():
            if asset.id != sound_id:
                continue
            if asset.is_custom and not asset.path.exists():
                logger.warning("Custom sound %s missing at %s, using default", sound_id, asset.path)
                break
            return self._materialize(asset)
        if sound_id and sound_id != DEFAULT_SOUND_ID:
            logger.warning("Sound %s not found, using default %s", sound_id, DEFAULT_SOUND_ID)
        return self.default()

    def default(self) -> SoundAsset:
        default = next(a for a in self.builtin_sounds() if a.id == DEFAULT_SOUND_ID)
        return self._materialize(default)

    def _materialize(self, asset: SoundAsset) -> SoundAsset:
        if not asset.is_custom:
            ensure_builtin_sound(asset.path, BUILTIN_TONES[asset.id])
        return asset
