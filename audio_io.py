import logging
import math
import wave
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Callable, Optional

import numpy as np
import pyaudio
from scipy.signal import resample_poly

from alarms.sounds import SoundAsset

logger = logging.getLogger(__name__)


def create_pyaudio() -> pyaudio.PyAudio:
    pa = pyaudio.PyAudio()
    return pa


def _to_mono(data: np.ndarray, channels: int) -> np.ndarray:
    if channels == 1:
        return data
    reshaped = data.reshape(-1, channels)
    return reshaped.mean(axis=1).astype(np.int16)


def _resample(samples: np.ndarray, input_rate: int, target_rate: int) -> np.ndarray:
    if input_rate == target_rate:
        return samples
    g = math.gcd(target_rate, input_rate)
    resampled = resample_poly(samples.astype(np.float64), target_rate // g, input_rate // g)
    return np.clip(resampled, -32768, 32767).astype(np.int16)


def load_wav(path: Path, target_rate: int) -> np.ndarray:
    """Read a 16-bit WAV as mono int16 samples at ``target_rate``."""
    with wave.open(str(path), "rb") as wav:
        if wav.getsampwidth() != 2:
            raise ValueError(f"Only 16-bit WAV files are supported: {path}")
        channels = wav.getnchannels()
        rate = wav.getframerate()
        frames = wav.readframes(wav.getnframes())
    samples = _to_mono(np.frombuffer(frames, dtype=np.int16), channels)
    return _resample(samples, rate, target_rate)


def scale_volume(samples: np.ndarray, volume: float) -> bytes:
    scaled = samples.astype(np.float32) * max(0.0, min(1.0, volume))
    return scaled.astype(np.int16).tobytes()


class _OutputStream:
    def __init__(self, pa: pyaudio.PyAudio, rate: int, device_index: Optional[int]):
        self.stream = pa.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=rate,
            output=True,
            output_device_index=device_index,
        )

    def write(self, data: bytes) -> None:
        self.stream.write(data)

    def close(self) -> None:
        self.stream.stop_stream()
        self.stream.close()


class LoopPlayer:
    """Plays one sound asset in a loop with a live-adjustable volume."""

    def __init__(self, pa: pyaudio.PyAudio, rate: int, device_index: Optional[int] = None, chunk_ms: int = 50):
        self.pa = pa
        self.rate = rate
        self.device_index = device_index
        self.chunk_len = max(1, int(rate * chunk_ms / 1000))
        self._volume = 0.0
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def start(self, asset: SoundAsset, volume: float) -> None:
        samples = load_wav(asset.path, self.rate)
        self.stop()
        self.set_volume(volume)
        self._stop_event = Event()
        self._thread = Thread(
            target=self._play_loop, args=(samples, self._stop_event), name="alarm-loop", daemon=True
        )
        self._thread.start()

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self._volume = volume

    def stop(self) -> None:
        self._stop_event.set()

    def _play_loop(self, samples: np.ndarray, stop_event: Event) -> None:  # pragma: no cover - device IO
        if not len(samples):
            logger.warning("Alarm sound is empty; nothing to loop")
            return
        out = _OutputStream(self.pa, self.rate, self.device_index)
        try:
            pos = 0
            while not stop_event.is_set():
                chunk = samples[pos : pos + self.chunk_len]
                pos += self.chunk_len
                if pos >= len(samples):
                    pos = 0
                with self._lock:
                    volume = self._volume
                out.write(scale_volume(chunk, volume))
        except OSError as exc:
            logger.error("Alarm loop playback failed: %s", exc)
        finally:
            out.close()


class ClipPlayer:
    """One-shot PCM playback; a new clip replaces the one still playing."""

    def __init__(self, pa: pyaudio.PyAudio, rate: int, device_index: Optional[int] = None, chunk_ms: int = 40):
        self.pa = pa
        self.rate = rate
        self.device_index = device_index
        self.chunk_bytes = max(2, int(rate * chunk_ms / 1000) * 2)
        self._stop_event = Event()

    def play(self, pcm: bytes, on_done: Optional[Callable[[], None]] = None) -> None:
        self.stop()
        self._stop_event = Event()
        Thread(target=self._play, args=(pcm, self._stop_event, on_done), name="clip-player", daemon=True).start()

    def stop(self) -> None:
        self._stop_event.set()

    def _play(self, pcm: bytes, stop_event: Event, on_done: Optional[Callable[[], None]]) -> None:
        # on_done runs whenever playback ends without stop(), including device errors
        try:
            out = _OutputStream(self.pa, self.rate, self.device_index)
            try:
                for idx in range(0, len(pcm), self.chunk_bytes):
                    if stop_event.is_set():
                        break
                    out.write(pcm[idx : idx + self.chunk_bytes])
            finally:
                out.close()
        except OSError as exc:
            logger.error("Clip playback failed: %s", exc)
        finally:
            if on_done and not stop_event.is_set():
                try:
                    on_done()
                except Exception:
                    logger.error("Clip on_done callback failed", exc_info=True)
