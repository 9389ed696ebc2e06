import json
import wave

from alarms.sounds import BUILTIN_TONES, SAMPLE_RATE, SoundCatalog, chime_tone, synthesize_tone


def test_builtin_catalog(tmp_path):
    catalog = SoundCatalog(tmp_path / "sounds")

    ids = [s.id for s in catalog.all_sounds()]

    assert ids == ["classic", "mellow", "morning", "zen"]


def test_resolve_generates_wav_on_demand(tmp_path):
    catalog = SoundCatalog(tmp_path / "sounds")

    asset = catalog.resolve("zen")

    assert asset.id == "zen"
    with wave.open(str(asset.path), "rb") as wav:
        assert wav.getframerate() == SAMPLE_RATE
        assert wav.getnchannels() == 1
        assert wav.getnframes() > 0


def test_unknown_sound_falls_back_to_classic(tmp_path):
    catalog = SoundCatalog(tmp_path / "sounds")

    assert catalog.resolve("missing").id == "classic"
    assert catalog.resolve(None).id == "classic"


def test_custom_sounds_are_listed_and_resolved(tmp_path):
    custom_path = tmp_path / "custom_sounds.json"
    (tmp_path / "rooster.wav").write_bytes(b"RIFF")
    custom_path.write_text(
        json.dumps(
            [
                {"id": "rooster", "name": "Rooster", "path": "rooster.wav"},
                {"id": "gone", "name": "Gone", "path": "gone.wav"},
                {"name": "no id"},
            ]
        ),
        encoding="utf-8",
    )
    catalog = SoundCatalog(tmp_path / "sounds", custom_path)

    assert [s.id for s in catalog.custom_sounds()] == ["rooster", "gone"]
    assert catalog.resolve("rooster").path == tmp_path / "rooster.wav"
    assert catalog.resolve("gone").id == "classic"


def test_tones_are_16_bit_and_bounded():
    samples = synthesize_tone(BUILTIN_TONES["classic"])

    assert samples.dtype.name == "int16"
    assert len(samples) == int(0.25 * SAMPLE_RATE) * 2 + int(0.15 * SAMPLE_RATE) + int(0.6 * SAMPLE_RATE)
    assert abs(int(samples.max())) <= 32767


def test_chime_is_raw_pcm():
    pcm = chime_tone()
    assert len(pcm) % 2 == 0
    assert len(pcm) > 0
