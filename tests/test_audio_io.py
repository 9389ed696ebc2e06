import threading

import numpy as np
import pytest

pytest.importorskip("pyaudio")

from alarms.sounds import write_wav  # noqa: E402
from audio_io import ClipPlayer, load_wav, scale_volume  # noqa: E402


def test_load_wav_resamples_to_target_rate(tmp_path):
    path = tmp_path / "tone.wav"
    write_wav(path, np.full(16000, 1000, dtype=np.int16), sample_rate=16000)

    samples = load_wav(path, 24000)

    assert samples.dtype == np.int16
    assert len(samples) == 24000


def test_load_wav_keeps_matching_rate(tmp_path):
    path = tmp_path / "tone.wav"
    source = np.arange(100, dtype=np.int16)
    write_wav(path, source, sample_rate=24000)

    assert np.array_equal(load_wav(path, 24000), source)


def test_scale_volume_clamps():
    samples = np.array([1000, -1000], dtype=np.int16)

    assert np.frombuffer(scale_volume(samples, 0.5), dtype=np.int16).tolist() == [500, -500]
    assert np.frombuffer(scale_volume(samples, 2.0), dtype=np.int16).tolist() == [1000, -1000]
    assert np.frombuffer(scale_volume(samples, -1.0), dtype=np.int16).tolist() == [0, 0]


class _BrokenDevice:
    def open(self, **kwargs):
        raise OSError("device busy")


def test_clip_reports_done_when_device_fails():
    done = threading.Event()

    ClipPlayer(_BrokenDevice(), 24000).play(b"\x00\x00" * 100, on_done=done.set)

    assert done.wait(2)


def test_stopped_clip_does_not_report_done():
    done = threading.Event()
    player = ClipPlayer(_BrokenDevice(), 24000)
    player._stop_event.set()

    player._play(b"\x00\x00", player._stop_event, done.set)

    assert not done.is_set()
